# Vehicle physical profiles used by the trip planner (METRIC specs)
# usable_capacity is the energy the BMS actually lets you drive on.
VEHICLE_PROFILES = {
    'tata_nexon_ev_lr': {
        'name': 'Tata Nexon.ev Long Range',
        'battery_capacity': 40.5,   # kWh
        'usable_capacity': 39.0,    # kWh (conservative)
        'drag_coefficient': 0.32,   # boxy SUV
        'frontal_area': 2.35,       # m²
        'weight': 1450,             # kg
        'rolling_resistance': 0.015,
        'motor_efficiency': 0.88,
    },
    'mg_zs_ev': {
        'name': 'MG ZS EV',
        'battery_capacity': 50.3,
        'usable_capacity': 49.0,
        'drag_coefficient': 0.29,
        'frontal_area': 2.4,
        'weight': 1610,
        'rolling_resistance': 0.012,
        'motor_efficiency': 0.90,
    },
    'byd_atto_3': {
        'name': 'BYD Atto 3',
        'battery_capacity': 60.5,
        'usable_capacity': 60.0,    # blade battery
        'drag_coefficient': 0.29,
        'frontal_area': 2.5,
        'weight': 1750,
        'rolling_resistance': 0.011,
        'motor_efficiency': 0.92,
    },
    'tata_tiago_ev': {
        'name': 'Tata Tiago.ev',
        'battery_capacity': 24.0,
        'usable_capacity': 22.5,
        'drag_coefficient': 0.34,
        'frontal_area': 2.15,
        'weight': 1150,
        'rolling_resistance': 0.015,
        'motor_efficiency': 0.85,
    },
    'hyundai_ioniq_5': {
        'name': 'Hyundai Ioniq 5',
        'battery_capacity': 72.6,
        'usable_capacity': 70.0,
        'drag_coefficient': 0.288,
        'frontal_area': 2.55,
        'weight': 1950,
        'rolling_resistance': 0.010,
        'motor_efficiency': 0.94,
    },
    'tata_tigor_ev': {
        'name': 'Tata Tigor.ev',
        'battery_capacity': 30.2,
        'usable_capacity': 28.5,
        'drag_coefficient': 0.33,
        'frontal_area': 2.3,
        'weight': 1400,
        'rolling_resistance': 0.01,
        'motor_efficiency': 0.90,
        'regen_efficiency': 0.70,
        'thermal_coefficient_heat': 0.015,
        'thermal_coefficient_cold': 0.010,
    },
}

DEFAULT_VEHICLE = 'tata_nexon_ev_lr'
