SCHEMA_VERSION = 2

SCHEMA_SQL = """
-- Schema version tracking
CREATE TABLE IF NOT EXISTS schema_version (
    version   INTEGER NOT NULL,
    applied_at REAL NOT NULL
);

-- Accounts: one row per wallet address
CREATE TABLE IF NOT EXISTS accounts (
    wallet_address                   TEXT PRIMARY KEY COLLATE NOCASE,
    parent_wallet_address            TEXT COLLATE NOCASE,
    username                         TEXT NOT NULL,
    username_chosen                  INTEGER NOT NULL DEFAULT 0 CHECK (username_chosen IN (0, 1)),
    personal_best_score              INTEGER NOT NULL DEFAULT 0 CHECK (personal_best_score >= 0),
    current_allowance_limit_eth      REAL CHECK (current_allowance_limit_eth >= 0),
    current_allowance_period_seconds INTEGER CHECK (current_allowance_period_seconds > 0),
    allowance_period_start           REAL,
    allowance_spent_this_period_eth  REAL NOT NULL DEFAULT 0.0 CHECK (allowance_spent_this_period_eth >= 0),
    created_at                       REAL NOT NULL,
    updated_at                       REAL NOT NULL
);

-- Score entries: append-only history, one row per submission
CREATE TABLE IF NOT EXISTS score_entries (
    id                      INTEGER PRIMARY KEY AUTOINCREMENT,
    wallet_address          TEXT NOT NULL COLLATE NOCASE,
    score                   INTEGER NOT NULL CHECK (score >= 0),
    user_name_at_submission TEXT NOT NULL,
    created_at              REAL NOT NULL,
    FOREIGN KEY (wallet_address) REFERENCES accounts(wallet_address)
);

-- Indexes for common queries
CREATE INDEX IF NOT EXISTS idx_accounts_parent ON accounts(parent_wallet_address COLLATE NOCASE);
CREATE INDEX IF NOT EXISTS idx_scores_score ON score_entries(score DESC, id);
CREATE INDEX IF NOT EXISTS idx_scores_wallet ON score_entries(wallet_address, id);
"""
