# Starter drills loaded by the admin seeding endpoint.

DRILLS = [
    {
        "id": "prompt-coffee-profitability",
        "type": "CASE_PROMPT",
        "difficulty": "BEGINNER",
        "title": "Coffee Chain Profitability",
        "content": "A national coffee chain has seen profits fall 15% over two years while revenue stayed flat. The CEO asks you to find out why and recommend next steps. How would you structure your approach?",
        "time_limit": 30,
        "industry": "Retail",
        "evaluation_criteria": ["Structure", "Hypothesis", "Recommendation"],
    },
    {
        "id": "prompt-airline-entry",
        "type": "CASE_PROMPT",
        "difficulty": "ADVANCED",
        "title": "Low-Cost Airline Market Entry",
        "content": "A European low-cost airline is considering entering the US domestic market. Lay out the framework you would use to decide whether it should enter, and how.",
        "time_limit": 30,
        "industry": "Transportation",
        "evaluation_criteria": ["Structure", "Market", "Competition", "Recommendation"],
    },
    {
        "id": "calc-margin",
        "type": "CALCULATION",
        "difficulty": "BEGINNER",
        "title": "Operating Margin",
        "content": "A company has revenue of $48M, cost of goods sold of $30M and operating expenses of $9.6M. What is its operating margin in percent?",
        "time_limit": 15,
        "industry": "General",
        "expected_answer": 17.5,
        "tolerance": 0.05,
        "evaluation_criteria": ["Accuracy"],
    },
    {
        "id": "calc-breakeven",
        "type": "CALCULATION",
        "difficulty": "INTERMEDIATE",
        "title": "Break-even Volume",
        "content": "A factory has fixed costs of $2.4M per year. Each unit sells for $80 and costs $50 to make. How many units must it sell per year to break even?",
        "time_limit": 15,
        "industry": "Manufacturing",
        "expected_answer": 80000,
        "tolerance": 0.01,
        "evaluation_criteria": ["Accuracy"],
    },
    {
        "id": "math-subscription-ltv",
        "type": "CASE_MATH",
        "difficulty": "INTERMEDIATE",
        "title": "Subscription Lifetime Value",
        "content": "A streaming service charges $12 per month with a 70% gross margin. Monthly churn is 4%. What is the lifetime gross profit of an average subscriber in dollars?",
        "time_limit": 20,
        "industry": "Media",
        "expected_answer": 210,
        "tolerance": 0.05,
        "evaluation_criteria": ["Accuracy", "Approach"],
    },
    {
        "id": "sizing-ev-chargers",
        "type": "MARKET_SIZING",
        "difficulty": "INTERMEDIATE",
        "title": "Home EV Chargers",
        "content": "Estimate the annual market size, in units, for home electric vehicle chargers in Germany.",
        "time_limit": 20,
        "industry": "Energy",
        "evaluation_criteria": ["Assumptions", "Segmentation", "Sanity check"],
    },
    {
        "id": "brainstorm-hospital-wait",
        "type": "BRAINSTORMING",
        "difficulty": "BEGINNER",
        "title": "Emergency Room Wait Times",
        "content": "A hospital wants to cut average emergency room wait times by 30%. Brainstorm as many ways as you can to achieve this.",
        "time_limit": 25,
        "industry": "Healthcare",
        "evaluation_criteria": ["Breadth", "Prioritization"],
    },
    {
        "id": "synth-bank-branches",
        "type": "SYNTHESIZING",
        "difficulty": "ADVANCED",
        "title": "Retail Bank Branch Network",
        "content": "You found that 40% of branches are unprofitable, digital transactions grew 25% a year, and older customers still visit branches weekly. Synthesize these findings into a recommendation for the CEO.",
        "time_limit": 30,
        "industry": "Financial Services",
        "evaluation_criteria": ["Recommendation", "Evidence", "Risks"],
    },
]
