# settings.py
"""
Centralized configuration for Caller Trust Lab.
All key parameters, thresholds, and tunables are grouped by module for easy management.
"""

# === Simulation Settings ===
SIMULATION_SETTINGS = {
    'DEFAULT_DAYS': 30,
    'DEFAULT_TIME_STEP_MINUTES': 60,
    'DEFAULT_TOKEN_COUNT': 50,
    'LAUNCH_WINDOW_FRACTION': 0.8,  # Tokens launch within the first 80% of the run
    'TRAJECTORY_STEP_HOURS': 24,  # One trajectory step per day since launch
    'DEAD_TOKEN_PRICE_RATIO': 0.01,  # Below 1% of initial price a token stops being callable
    'INITIAL_PRICE_RANGE': (0.00001, 0.0001),  # (min, span)
    'INITIAL_MARKET_CAP_RANGE': (10000.0, 90000.0),
    'INITIAL_LIQUIDITY_RANGE': (5000.0, 45000.0),
    'VOLUME_TO_MARKET_CAP': 0.1,
    'CHAIN': 'solana',
    'DEFAULT_CACHE_DIR': './simulation-cache',
}

# === Profit Back-fill Settings ===
BACKFILL_SETTINGS = {
    'SHORT_HOLD_STEPS': 24,
    'HOLD_STEPS_BY_ARCHETYPE': {
        'elite_analyst': 72,
        'skilled_trader': 48,
        'pump_chaser': 24,
        'fomo_trader': 24,
    },
    'DEFAULT_HOLD_STEPS': 24,
    'RUG_DETECTION_RATIO': 0.1,  # Price below 10% of call price = rug
    'DUMP_DETECTION_RATIO': 0.3,  # Price below 30% of running peak = dump
    'MOMENTUM_ENTRY_SLIPPAGE': 1.15,
    'RUG_PROMOTER_ENTRY_SLIPPAGE': 1.2,
    'ELITE_ENTRY_SLIPPAGE': 0.98,
    'FORCED_EXIT_SLIPPAGE': 0.9,
}

# === Actor Behavior Settings ===
ACTOR_SETTINGS = {
    'CALL_PROBABILITY': {'high': 0.7, 'medium': 0.4, 'low': 0.15},
    'ELITE_MAX_TOKEN_AGE_HOURS': 48,
    'SKILLED_MAX_TOKEN_AGE_HOURS': 72,
    'FOMO_LOOKBACK_POINTS': 10,
    'FOMO_MIN_GAIN': 0.5,
    'PUMP_CHASER_LOOKBACK_POINTS': 5,
    'PUMP_CHASER_MIN_GAIN': 0.3,
    'SKILLED_SCAM_DETECTION_RATE': 0.7,
}

# === Trust Score Settings ===
TRUST_SCORE_SETTINGS = {
    'PROFIT_WEIGHT': 0.25,
    'WIN_RATE_WEIGHT': 0.25,
    'SHARPE_WEIGHT': 0.15,
    'ALPHA_WEIGHT': 0.10,
    'CONSISTENCY_WEIGHT': 0.10,
    'QUALITY_WEIGHT': 0.15,
    'NORMAL_VOLUME_THRESHOLD': 100,
    'HIGH_VOLUME_THRESHOLD': 300,
    'EXTREME_VOLUME_THRESHOLD': 500,
    'VOLUME_PENALTY_THRESHOLD': 50,  # Calls needed before the volume penalty metric reaches 0
    'PROFIT_CAP': (-100.0, 200.0),
    'BASE_SCORE_WEIGHT': 0.4,
    'PERFORMANCE_SCORE_WEIGHT': 0.6,
}

# === Optimizer Settings ===
OPTIMIZER_SETTINGS = {
    'MAE_SUGGESTION_THRESHOLD': 15,
    'CORRELATION_SUGGESTION_THRESHOLD': 0.7,
    'RANKING_SUGGESTION_THRESHOLD': 0.8,
    'ARCHETYPE_ERROR_SUGGESTION_THRESHOLD': 20,
    'DEFAULT_EXPECTED_SCORE': 50,
    'DEFAULT_REPORT_DIR': './optimization-results',
}

# === Logging Settings ===
LOGGING_SETTINGS = {
    'DEFAULT_CONFIG_PATH': 'config.ini',
    'DEFAULT_LOG_FILE': 'caller_trust.log',
    'PACKAGE_LOGGER': 'caller_trust',  # Parent of every module logger in the package
}
