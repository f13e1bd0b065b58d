#!/usr/bin/env python3
"""
Environment configuration generator for the RLV store backend

Writes a .env file with a random SECRET_KEY, ADMIN_PASSWORD and
SCHEDULER_TOKEN, the database URL and the order lifecycle timings.

Usage:
    python generate_env.py              # Refuses to overwrite an existing .env
    python generate_env.py --force      # Overwrite existing .env (backup kept)
    python generate_env.py --dev        # Predictable values for local development
"""

import argparse
import os
import secrets
import string
import sys
from datetime import datetime
from pathlib import Path


class EnvGenerator:
    """Generate environment configuration"""

    def __init__(self, dev_mode=False):
        self.dev_mode = dev_mode
        self.env_file = Path(__file__).parent / '.env'

    def generate_secret_key(self, length=64):
        if self.dev_mode:
            return "dev-secret-key-DO-NOT-USE-IN-PRODUCTION"
        return secrets.token_hex(length)

    def generate_scheduler_token(self):
        if self.dev_mode:
            return "dev-scheduler-token"
        return secrets.token_urlsafe(32)

    def generate_password(self, length=20):
        """
        Random password with at least one lowercase, uppercase, digit and
        special character. Special characters avoid #, =, quotes and colons
        so the value survives .env parsing unquoted.
        """
        if self.dev_mode:
            return "admin987654321!"

        special = "!@$%^&*()_+-[]{}|;.,<>?"
        pools = [string.ascii_lowercase, string.ascii_uppercase, string.digits, special]
        password = [secrets.choice(pool) for pool in pools]
        alphabet = ''.join(pools)
        password += [secrets.choice(alphabet) for _ in range(length - len(password))]
        secrets.SystemRandom().shuffle(password)
        return ''.join(password)

    def create_env_content(self):
        secret_key = self.generate_secret_key()
        admin_password = self.generate_password()
        scheduler_token = self.generate_scheduler_token()
        production = not self.dev_mode

        content = f"""# RLV store configuration
# Generated {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}{' (development mode)' if self.dev_mode else ''}
# Keep this file out of version control.

SECRET_KEY={secret_key}
ADMIN_PASSWORD={admin_password}
SCHEDULER_TOKEN={scheduler_token}

DATABASE_URL=sqlite:///instance/rlv_store.db

# Order lifecycle
ORDER_AUTO_APPROVE_SECONDS=60
DISPATCH_WAIT_SECONDS=60
INVENTORY_ITEM_CAP=10
CART_MAX_PER_ITEM=3
SCHEDULER_INTERVAL_SECONDS=30

# Web server
FLASK_HOST=127.0.0.1
FLASK_PORT=5000
FLASK_DEBUG={'True' if self.dev_mode else 'False'}
ENABLE_HTTPS={'True' if production else 'False'}
SESSION_COOKIE_SECURE={'True' if production else 'False'}
RATELIMIT_ENABLED=True

LOG_DIR=logs
"""
        return content, admin_password, scheduler_token

    def backup_existing_env(self):
        if not self.env_file.exists():
            return None
        backup = self.env_file.with_name(f".env.backup.{datetime.now().strftime('%Y%m%d_%H%M%S')}")
        backup.write_text(self.env_file.read_text())
        print(f"Backed up existing .env to {backup.name}")
        return backup

    def write_env_file(self, force=False):
        if self.env_file.exists() and not force:
            print(".env already exists. Use --force to overwrite it.")
            return None

        if force:
            self.backup_existing_env()

        content, admin_password, scheduler_token = self.create_env_content()
        self.env_file.write_text(content)
        try:
            os.chmod(self.env_file, 0o600)
        except OSError as e:
            print(f"Warning: could not restrict .env permissions: {e}")

        print(f"Wrote {self.env_file}")
        return admin_password, scheduler_token

    @staticmethod
    def display_credentials(admin_password, scheduler_token):
        print()
        print("Store these now, they are not shown again:")
        print(f"  admin password:  {admin_password}")
        print(f"  scheduler token: {scheduler_token}")
        print()
        print("Send the token as X-Scheduler-Token when calling /internal/scheduler/tick.")


def main():
    parser = argparse.ArgumentParser(description='Generate .env for the RLV store backend')
    parser.add_argument('--force', action='store_true', help='Overwrite an existing .env file')
    parser.add_argument('--dev', action='store_true', help='Use predictable development values')
    args = parser.parse_args()

    generator = EnvGenerator(dev_mode=args.dev)
    result = generator.write_env_file(force=args.force)
    if result is None:
        return 1
    generator.display_credentials(*result)
    return 0


if __name__ == '__main__':
    sys.exit(main())
