"""Initial schema: profiles, catalog, orders, notifications, gamification, polls.

Also creates generate_unlock_code(), the store-side unlock code generator
used by checkout.

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-17
"""

from collections.abc import Sequence

from alembic import op

revision: str = "001_initial_schema"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- Profiles ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS users (
            id UUID PRIMARY KEY,
            email VARCHAR(320) NOT NULL,
            phone VARCHAR(32),
            loyalty_points INTEGER NOT NULL DEFAULT 0,
            loyalty_tier VARCHAR(16) NOT NULL DEFAULT 'bronze',
            is_admin BOOLEAN NOT NULL DEFAULT false,
            notification_preferences JSONB NOT NULL
                DEFAULT '{"restock": true, "promotions": true, "games": true}',
            paygreen_card_id VARCHAR(128),
            paygreen_card_last4 VARCHAR(4),
            paygreen_card_type VARCHAR(32),
            default_payment_method VARCHAR(16) NOT NULL DEFAULT 'nfc',
            created_at TIMESTAMPTZ DEFAULT NOW(),
            last_active TIMESTAMPTZ,
            CONSTRAINT ck_users_loyalty_points_non_negative CHECK (loyalty_points >= 0)
        )
    """)

    op.execute("""
        CREATE TABLE IF NOT EXISTS meal_voucher_cards (
            id UUID PRIMARY KEY,
            user_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            card_name VARCHAR(64) NOT NULL,
            card_type VARCHAR(32) NOT NULL,
            card_number VARCHAR(4) NOT NULL,
            is_default BOOLEAN NOT NULL DEFAULT false,
            created_at TIMESTAMPTZ NOT NULL,
            updated_at TIMESTAMPTZ NOT NULL
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS idx_meal_voucher_cards_user ON meal_voucher_cards(user_id)")

    # --- Catalog ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS fridges (
            id UUID PRIMARY KEY,
            code VARCHAR(32) UNIQUE NOT NULL,
            name VARCHAR(128) NOT NULL,
            location VARCHAR(128) NOT NULL DEFAULT '',
            address VARCHAR(256) NOT NULL DEFAULT '',
            status VARCHAR(16) NOT NULL DEFAULT 'active',
            last_restocked TIMESTAMPTZ,
            opening_hours JSONB NOT NULL DEFAULT '{}',
            created_at TIMESTAMPTZ DEFAULT NOW(),
            updated_at TIMESTAMPTZ DEFAULT NOW()
        )
    """)

    op.execute("""
        CREATE TABLE IF NOT EXISTS dishes (
            id UUID PRIMARY KEY,
            name VARCHAR(128) NOT NULL,
            description TEXT NOT NULL DEFAULT '',
            price NUMERIC(10, 2) NOT NULL,
            category VARCHAR(16) NOT NULL DEFAULT 'lunch',
            image_url VARCHAR(512) NOT NULL DEFAULT '',
            allergens JSONB NOT NULL DEFAULT '[]',
            labels JSONB NOT NULL DEFAULT '[]',
            nutritional_info JSONB NOT NULL DEFAULT '{}',
            is_bestseller BOOLEAN NOT NULL DEFAULT false,
            created_at TIMESTAMPTZ DEFAULT NOW(),
            updated_at TIMESTAMPTZ DEFAULT NOW()
        )
    """)

    op.execute("""
        CREATE TABLE IF NOT EXISTS fridge_inventory (
            id UUID PRIMARY KEY,
            fridge_id UUID NOT NULL REFERENCES fridges(id) ON DELETE CASCADE,
            dish_id UUID NOT NULL REFERENCES dishes(id) ON DELETE CASCADE,
            stock INTEGER NOT NULL DEFAULT 0,
            promotion_price NUMERIC(10, 2),
            is_new BOOLEAN NOT NULL DEFAULT false,
            display_order INTEGER NOT NULL DEFAULT 0,
            updated_at TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT uq_fridge_inventory_fridge_dish UNIQUE (fridge_id, dish_id)
        )
    """)

    op.execute("""
        CREATE TABLE IF NOT EXISTS promotions (
            id UUID PRIMARY KEY,
            title VARCHAR(128) NOT NULL,
            description TEXT NOT NULL DEFAULT '',
            type VARCHAR(16) NOT NULL DEFAULT 'discount',
            image_url VARCHAR(512),
            fridge_ids JSONB,
            start_date TIMESTAMPTZ NOT NULL,
            end_date TIMESTAMPTZ NOT NULL,
            discount_percentage INTEGER,
            is_active BOOLEAN NOT NULL DEFAULT true,
            created_at TIMESTAMPTZ NOT NULL
        )
    """)

    # --- Orders ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS orders (
            id UUID PRIMARY KEY,
            user_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            fridge_id UUID NOT NULL REFERENCES fridges(id),
            dish_id UUID REFERENCES dishes(id),
            quantity INTEGER NOT NULL DEFAULT 1,
            unit_price NUMERIC(10, 2) NOT NULL,
            total_amount NUMERIC(10, 2) NOT NULL,
            payment_method VARCHAR(16) NOT NULL,
            payment_status VARCHAR(16) NOT NULL DEFAULT 'pending',
            payment_ref VARCHAR(128),
            unlock_code VARCHAR(6) NOT NULL,
            unlock_expires_at TIMESTAMPTZ,
            is_collected BOOLEAN NOT NULL DEFAULT false,
            collected_at TIMESTAMPTZ,
            points_awarded INTEGER NOT NULL DEFAULT 0,
            idempotency_key VARCHAR(128),
            created_at TIMESTAMPTZ NOT NULL,
            updated_at TIMESTAMPTZ NOT NULL,
            CONSTRAINT uq_orders_user_idempotency_key UNIQUE (user_id, idempotency_key)
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS idx_orders_user_created ON orders(user_id, created_at DESC)")

    # --- Notifications ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS notifications (
            id UUID PRIMARY KEY,
            user_id UUID REFERENCES users(id) ON DELETE CASCADE,
            fridge_id UUID REFERENCES fridges(id) ON DELETE SET NULL,
            type VARCHAR(32) NOT NULL,
            title VARCHAR(256) NOT NULL,
            message TEXT NOT NULL,
            link_url VARCHAR(512),
            sent_at TIMESTAMPTZ NOT NULL,
            created_at TIMESTAMPTZ NOT NULL
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS idx_notifications_created ON notifications(created_at DESC)")

    # --- Gamification ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS badge_types (
            id UUID PRIMARY KEY,
            name VARCHAR(64) UNIQUE NOT NULL,
            description TEXT NOT NULL,
            category VARCHAR(16) NOT NULL,
            level INTEGER NOT NULL DEFAULT 1,
            icon VARCHAR(32) NOT NULL,
            xp_reward INTEGER NOT NULL DEFAULT 0,
            requirement_value INTEGER NOT NULL,
            color VARCHAR(16) NOT NULL,
            sort_order INTEGER NOT NULL DEFAULT 0
        )
    """)

    op.execute("""
        CREATE TABLE IF NOT EXISTS user_badges (
            id UUID PRIMARY KEY,
            user_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            badge_type_id UUID NOT NULL REFERENCES badge_types(id),
            unlocked_at TIMESTAMPTZ NOT NULL,
            progress INTEGER NOT NULL DEFAULT 0,
            CONSTRAINT uq_user_badges_user_badge UNIQUE (user_id, badge_type_id)
        )
    """)

    op.execute("""
        CREATE TABLE IF NOT EXISTS user_stats (
            user_id UUID PRIMARY KEY REFERENCES users(id) ON DELETE CASCADE,
            total_xp INTEGER NOT NULL DEFAULT 0,
            level INTEGER NOT NULL DEFAULT 1,
            total_orders INTEGER NOT NULL DEFAULT 0,
            total_spent NUMERIC(10, 2) NOT NULL DEFAULT 0,
            current_streak INTEGER NOT NULL DEFAULT 0,
            longest_streak INTEGER NOT NULL DEFAULT 0,
            last_order_date DATE,
            polls_voted INTEGER NOT NULL DEFAULT 0,
            updated_at TIMESTAMPTZ NOT NULL,
            CONSTRAINT ck_user_stats_total_xp_non_negative CHECK (total_xp >= 0)
        )
    """)

    # --- Weekly polls ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS polls (
            id UUID PRIMARY KEY,
            title VARCHAR(256) NOT NULL,
            dish_1_id UUID NOT NULL REFERENCES dishes(id),
            dish_2_id UUID NOT NULL REFERENCES dishes(id),
            dish_3_id UUID NOT NULL REFERENCES dishes(id),
            status VARCHAR(16) NOT NULL DEFAULT 'active',
            start_date TIMESTAMPTZ NOT NULL,
            end_date TIMESTAMPTZ NOT NULL,
            created_by UUID REFERENCES users(id) ON DELETE SET NULL,
            created_at TIMESTAMPTZ NOT NULL
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS idx_polls_status_dates ON polls(status, start_date, end_date)")

    op.execute("""
        CREATE TABLE IF NOT EXISTS poll_votes (
            id UUID PRIMARY KEY,
            poll_id UUID NOT NULL REFERENCES polls(id) ON DELETE CASCADE,
            user_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            dish_id UUID NOT NULL REFERENCES dishes(id),
            created_at TIMESTAMPTZ NOT NULL,
            CONSTRAINT uq_poll_votes_poll_user UNIQUE (poll_id, user_id)
        )
    """)

    # --- Unlock codes: 6 digits, not reused by another order still valid ---
    op.execute("""
        CREATE OR REPLACE FUNCTION generate_unlock_code() RETURNS VARCHAR(6) AS $$
        DECLARE
            candidate VARCHAR(6);
        BEGIN
            LOOP
                candidate := LPAD(FLOOR(RANDOM() * 1000000)::INT::TEXT, 6, '0');
                EXIT WHEN NOT EXISTS (
                    SELECT 1 FROM orders
                    WHERE unlock_code = candidate
                      AND is_collected = false
                      AND (unlock_expires_at IS NULL OR unlock_expires_at > NOW())
                );
            END LOOP;
            RETURN candidate;
        END;
        $$ LANGUAGE plpgsql VOLATILE
    """)


def downgrade() -> None:
    op.execute("DROP FUNCTION IF EXISTS generate_unlock_code()")
    op.execute("DROP TABLE IF EXISTS poll_votes CASCADE")
    op.execute("DROP TABLE IF EXISTS polls CASCADE")
    op.execute("DROP TABLE IF EXISTS user_stats CASCADE")
    op.execute("DROP TABLE IF EXISTS user_badges CASCADE")
    op.execute("DROP TABLE IF EXISTS badge_types CASCADE")
    op.execute("DROP TABLE IF EXISTS notifications CASCADE")
    op.execute("DROP TABLE IF EXISTS orders CASCADE")
    op.execute("DROP TABLE IF EXISTS promotions CASCADE")
    op.execute("DROP TABLE IF EXISTS fridge_inventory CASCADE")
    op.execute("DROP TABLE IF EXISTS dishes CASCADE")
    op.execute("DROP TABLE IF EXISTS fridges CASCADE")
    op.execute("DROP TABLE IF EXISTS meal_voucher_cards CASCADE")
    op.execute("DROP TABLE IF EXISTS users CASCADE")
