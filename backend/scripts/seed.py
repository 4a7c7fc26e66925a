#!/usr/bin/env python
"""Idempotent seed script for staff users, the starter menu and settings.

Usage:
    python backend/scripts/seed.py               # seed normally
    python backend/scripts/seed.py --dry-run     # run logic then rollback (no DB changes)
    python backend/scripts/seed.py --sweep       # also remove live orders that already have a report
    python backend/scripts/seed.py --show-users
"""
from __future__ import annotations
import os, sys, argparse, textwrap
from sqlalchemy import select, text

# Allow running from repo root
sys.path.append(os.path.abspath('backend'))

from orderflow import create_app, get_db  # type: ignore
from orderflow.models.authz import Base, User
from orderflow.models.menu_item import MenuItem
from orderflow.models.setting import Setting, Counter
import orderflow.models.order  # noqa: F401
from orderflow.services.order_repository import OrderRepository, ORDER_COUNTER
from orderflow.services.settings import get_setting, set_setting

# (name, price_cents, category)
STARTER_MENU = [
    ('Margherita Pizza', 1299, 'Pizza'),
    ('Pepperoni Pizza', 1499, 'Pizza'),
    ('Caesar Salad', 899, 'Salads'),
    ('Garlic Bread', 499, 'Sides'),
    ('Lemonade', 350, 'Drinks'),
]


def ensure_users(session):
    existing = {u.username for u in session.execute(select(User)).scalars().all()}
    created = 0
    for role in User.ALL_ROLES:
        username = os.getenv(f'SEED_{role.upper()}_USERNAME', role)
        if username in existing:
            continue
        user = User(username=username, role=role)
        user.set_password(os.getenv(f'SEED_{role.upper()}_PASSWORD', 'ChangeMe123!'))
        session.add(user)
        created += 1
        print(f"[INFO] Created {role} user '{username}' with temporary password.")
    return created


def ensure_menu(session):
    existing = {m.name for m in session.execute(select(MenuItem)).scalars().all()}
    created = 0
    for name, price_cents, category in STARTER_MENU:
        if name not in existing:
            session.add(MenuItem(name=name, price_cents=price_cents, category=category))
            created += 1
    return created


def ensure_settings(session, customer_ordering_default: bool):
    if get_setting(session, Setting.KEY_CUSTOMER_ORDERING) is None:
        set_setting(session, Setting.KEY_CUSTOMER_ORDERING, customer_ordering_default, 'Allow customers to place orders')
    if session.get(Counter, ORDER_COUNTER) is None:
        session.add(Counter(name=ORDER_COUNTER, value=0))


def print_users(session):
    rows = session.execute(select(User).order_by(User.id)).scalars().all()
    if not rows:
        print('[INFO] No users present.')
        return
    name_w = max(len(u.username) for u in rows)
    print(f"{'User'.ljust(name_w)} | Role    | Active")
    print('-' * (name_w + 20))
    for u in rows:
        print(f"{u.username.ljust(name_w)} | {u.role.ljust(7)} | {'yes' if u.is_active else 'no'}")


def parse_args():
    p = argparse.ArgumentParser(
        description='Seed users, menu and settings',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent("""Examples:\n  seed normally: seed.py\n  dry run: seed.py --dry-run\n  recover half-archived orders: seed.py --sweep\n""")
    )
    p.add_argument('--dry-run', action='store_true', help='Rollback after operations (no commit)')
    p.add_argument('--sweep', action='store_true', help='Delete live orders that already have a report')
    p.add_argument('--show-users', action='store_true', help='Print users after seeding')
    return p.parse_args()


def main():
    args = parse_args()
    app = create_app({'EVENT_DISPATCH': 'inline'})
    with app.app_context():
        session = get_db()
        try:
            session.execute(text('SELECT 1 FROM orders LIMIT 1'))
        except Exception:
            # Auto-create schema for bootstrap; in real env prefer alembic upgrade
            session.rollback()
            Base.metadata.create_all(session.get_bind())
        finally:
            session.commit()

    with app.app_context():
        session = get_db()
        try:
            created_u = ensure_users(session)
            created_m = ensure_menu(session)
            ensure_settings(session, app.config['CUSTOMER_ORDERING_DEFAULT'])
            if args.dry_run:
                session.rollback()
                print(f"[DRY-RUN] (rolled back) Users would create: {created_u}, Menu items would create: {created_m}")
            else:
                session.commit()
                print(f"[DONE] Users created: {created_u}, Menu items created: {created_m}")
            if args.sweep and not args.dry_run:
                swept = OrderRepository(session).sweep_orphan_reports()
                print(f"[SWEEP] Removed {swept} already-archived order(s)")
            if args.show_users:
                print('\nUsers:')
                print_users(session)
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()


if __name__ == '__main__':
    main()
