"""wagerbook schema

Revision ID: 0001_wagerbook
Revises:
Create Date: 2026-10-17
"""

from alembic import op
import sqlalchemy as sa


revision = "0001_wagerbook"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "games",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("league", sa.String(length=16), nullable=False),
        sa.Column("home_team_id", sa.String(length=32), nullable=False),
        sa.Column("away_team_id", sa.String(length=32), nullable=False),
        sa.Column("home_team", sa.String(length=128), nullable=False),
        sa.Column("away_team", sa.String(length=128), nullable=False),
        sa.Column("game_key", sa.String(length=80), nullable=False),
        sa.Column("scheduled_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="scheduled"),
        sa.Column("home_score", sa.Integer(), nullable=True),
        sa.Column("away_score", sa.Integer(), nullable=True),
        sa.Column("is_final", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("espn_event_id", sa.String(length=64), nullable=True, unique=True),
    )
    op.create_index("ix_games_league", "games", ["league"])
    op.create_index("ix_games_game_key", "games", ["game_key"])
    op.create_index("ix_games_scheduled_time", "games", ["scheduled_time"])
    op.create_index("ix_games_is_final", "games", ["is_final"])

    op.create_table(
        "odds_quotes",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("game_id", sa.Integer(), sa.ForeignKey("games.id"), nullable=False),
        sa.Column("market", sa.String(length=16), nullable=False),
        sa.Column("side", sa.String(length=8), nullable=False),
        sa.Column("line_value", sa.String(length=16), nullable=True),
        sa.Column("price", sa.String(length=16), nullable=False),
        sa.Column("source_provider", sa.String(length=32), nullable=False),
        sa.Column("bookmaker", sa.String(length=64), nullable=False),
        sa.Column("observed_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("is_current", sa.Boolean(), nullable=False, server_default=sa.text("true")),
    )
    op.create_index("ix_odds_quotes_game_id", "odds_quotes", ["game_id"])
    op.create_index("ix_odds_quotes_observed_at", "odds_quotes", ["observed_at"])
    op.create_index("ix_odds_quote_current", "odds_quotes", ["game_id", "market", "side", "is_current"])

    op.create_table(
        "user_ledgers",
        sa.Column("user_id", sa.String(length=64), primary_key=True),
        sa.Column("credit_limit", sa.Float(), nullable=False),
        sa.Column("base_credit_limit", sa.Float(), nullable=False),
        sa.Column("total_wagered", sa.Float(), nullable=False, server_default="0"),
        sa.Column("payout_balance", sa.Float(), nullable=False, server_default="0"),
        sa.Column("previous_total_wagered", sa.Float(), nullable=True),
        sa.Column("last_reset_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="active"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("ix_user_ledgers_status", "user_ledgers", ["status"])

    op.create_table(
        "wagers",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("wager_type", sa.String(length=16), nullable=False),
        sa.Column("stake_amount", sa.Float(), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="pending"),
        sa.Column("payout", sa.Float(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("settled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("canceled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("canceled_by", sa.String(length=64), nullable=True),
    )
    op.create_index("ix_wagers_user_id", "wagers", ["user_id"])
    op.create_index("ix_wagers_status", "wagers", ["status"])
    op.create_index("ix_wagers_created_at", "wagers", ["created_at"])

    op.create_table(
        "wager_picks",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("wager_id", sa.Integer(), sa.ForeignKey("wagers.id"), nullable=False),
        sa.Column("game_id", sa.Integer(), sa.ForeignKey("games.id"), nullable=False),
        sa.Column("leg_order", sa.Integer(), nullable=False),
        sa.Column("market", sa.String(length=16), nullable=False),
        sa.Column("selection", sa.String(length=8), nullable=False),
        sa.Column("line_snapshot", sa.String(length=16), nullable=True),
        sa.Column("price_snapshot", sa.String(length=16), nullable=False),
        sa.Column("result", sa.String(length=8), nullable=True),
    )
    op.create_index("ix_wager_picks_wager_id", "wager_picks", ["wager_id"])
    op.create_index("ix_wager_picks_game_id", "wager_picks", ["game_id"])

    op.create_table(
        "ledger_transactions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.String(length=64), sa.ForeignKey("user_ledgers.user_id"), nullable=False),
        sa.Column("wager_id", sa.Integer(), sa.ForeignKey("wagers.id"), nullable=True),
        sa.Column("entry_type", sa.String(length=16), nullable=False),
        sa.Column("amount", sa.Float(), nullable=False),
        sa.Column("total_wagered_before", sa.Float(), nullable=False),
        sa.Column("total_wagered_after", sa.Float(), nullable=False),
        sa.Column("description", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("ix_ledger_transactions_user_id", "ledger_transactions", ["user_id"])
    op.create_index("ix_ledger_transactions_wager_id", "ledger_transactions", ["wager_id"])
    op.create_index("ix_ledger_transactions_entry_type", "ledger_transactions", ["entry_type"])
    op.create_index("ix_ledger_transactions_created_at", "ledger_transactions", ["created_at"])

    op.create_table(
        "reset_audits",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("users_total", sa.Integer(), nullable=False),
        sa.Column("users_reset", sa.Integer(), nullable=False),
        sa.Column("users_skipped", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )


def downgrade() -> None:
    op.drop_table("reset_audits")
    op.drop_index("ix_ledger_transactions_created_at", table_name="ledger_transactions")
    op.drop_index("ix_ledger_transactions_entry_type", table_name="ledger_transactions")
    op.drop_index("ix_ledger_transactions_wager_id", table_name="ledger_transactions")
    op.drop_index("ix_ledger_transactions_user_id", table_name="ledger_transactions")
    op.drop_table("ledger_transactions")
    op.drop_index("ix_wager_picks_game_id", table_name="wager_picks")
    op.drop_index("ix_wager_picks_wager_id", table_name="wager_picks")
    op.drop_table("wager_picks")
    op.drop_index("ix_wagers_created_at", table_name="wagers")
    op.drop_index("ix_wagers_status", table_name="wagers")
    op.drop_index("ix_wagers_user_id", table_name="wagers")
    op.drop_table("wagers")
    op.drop_index("ix_user_ledgers_status", table_name="user_ledgers")
    op.drop_table("user_ledgers")
    op.drop_index("ix_odds_quote_current", table_name="odds_quotes")
    op.drop_index("ix_odds_quotes_observed_at", table_name="odds_quotes")
    op.drop_index("ix_odds_quotes_game_id", table_name="odds_quotes")
    op.drop_table("odds_quotes")
    op.drop_index("ix_games_is_final", table_name="games")
    op.drop_index("ix_games_scheduled_time", table_name="games")
    op.drop_index("ix_games_game_key", table_name="games")
    op.drop_index("ix_games_league", table_name="games")
    op.drop_table("games")
