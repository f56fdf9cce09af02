"""Pure reward-domain rules: errors, spin policy and engine, region keys."""
