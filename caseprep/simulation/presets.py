# Seed data for the simulation feature: a species catalog and environment presets.

SPECIES_CATALOG = [
    {"id": "kelp", "name": "Giant Kelp", "type": "PRODUCER", "energy_requirement": 40, "reproduction_rate": 0.6},
    {"id": "phytoplankton", "name": "Phytoplankton", "type": "PRODUCER", "energy_requirement": 20, "reproduction_rate": 0.9},
    {"id": "seagrass", "name": "Seagrass", "type": "PRODUCER", "energy_requirement": 30, "reproduction_rate": 0.5},
    {"id": "coral", "name": "Reef Coral", "type": "PRODUCER", "energy_requirement": 35, "reproduction_rate": 0.3},
    {"id": "zooplankton", "name": "Zooplankton", "type": "CONSUMER", "energy_requirement": 15, "reproduction_rate": 0.8},
    {"id": "sea-urchin", "name": "Sea Urchin", "type": "CONSUMER", "energy_requirement": 25, "reproduction_rate": 0.4},
    {"id": "sardine", "name": "Sardine", "type": "CONSUMER", "energy_requirement": 30, "reproduction_rate": 0.7},
    {"id": "sea-otter", "name": "Sea Otter", "type": "CONSUMER", "energy_requirement": 60, "reproduction_rate": 0.2},
    {"id": "reef-shark", "name": "Reef Shark", "type": "CONSUMER", "energy_requirement": 80, "reproduction_rate": 0.1},
]

ENVIRONMENT_PRESETS = [
    {
        "id": "shallow-reef",
        "name": "Shallow Reef",
        "description": "Warm, bright and shallow. A forgiving starting point for balancing a reef.",
        "difficulty": "BEGINNER",
        "environment": {"temperature": 25.5, "depth": 15, "salinity": 35, "light_level": 90},
    },
    {
        "id": "coastal-waters",
        "name": "Coastal Waters",
        "description": "Moderate depth and light with brackish salinity near river mouths.",
        "difficulty": "INTERMEDIATE",
        "environment": {"temperature": 18, "depth": 45, "salinity": 32, "light_level": 65},
    },
    {
        "id": "deep-ocean",
        "name": "Deep Ocean",
        "description": "Cold and dark. Producers struggle and every interaction counts.",
        "difficulty": "ADVANCED",
        "environment": {"temperature": 4, "depth": 800, "salinity": 35.5, "light_level": 10},
    },
    {
        "id": "polar-marine",
        "name": "Polar Marine",
        "description": "Near-freezing water under seasonal ice with very little light.",
        "difficulty": "ADVANCED",
        "environment": {"temperature": -1.5, "depth": 200, "salinity": 34, "light_level": 5},
    },
]


def get_environment_preset(preset_id: str):
    return next((p for p in ENVIRONMENT_PRESETS if p["id"] == preset_id), None)


def get_catalog_species(species_id: str):
    return next((s for s in SPECIES_CATALOG if s["id"] == species_id), None)
