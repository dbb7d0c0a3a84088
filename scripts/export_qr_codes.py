#!/usr/bin/env python3
"""
Export the QR code archive for an existing message.

Looks the message up in the configured store, renders every QR style for
its share URL and writes {name}-qrcodes.zip to the output directory.

Usage:
    python scripts/export_qr_codes.py <message-id> [--out DIR]

Requires:
    - .env file with Snowflake credentials. SNOWFLAKE_MOCK_MODE is rejected:
      the in-memory store of a fresh process holds no messages.
"""

import sys
from pathlib import Path

# Add project root to path so we can import our modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def export_qr_codes(message_id: str, out_dir: Path) -> bool:
    """Write the archive for message_id. Returns False if the message can't be loaded."""
    from saywith.config.settings import get_settings
    from saywith.core.messages.errors import RecordNotFoundError, StoreError
    from saywith.infrastructure.qr.generator import QRCodeGenerator, build_qr_zip, qr_zip_filename
    from saywith.infrastructure.snowflake.client import (
        create_snowflake_connection,
        snowflake_config_from_settings,
    )
    from saywith.infrastructure.snowflake.repositories.messages import MessageRepository

    settings = get_settings()

    if settings.snowflake_mock_mode:
        print("ERROR: SNOWFLAKE_MOCK_MODE is set; exporting needs the real message store")
        return False

    with create_snowflake_connection(config=snowflake_config_from_settings(settings)) as conn:
        repository = MessageRepository(conn, collection=settings.message_collection)
        try:
            record = repository.fetch_record(message_id)
        except RecordNotFoundError:
            print(f"ERROR: No data found for ID {message_id}")
            return False
        except StoreError as e:
            print(f"ERROR: Failed to fetch data: {e}")
            return False

    share_url = settings.share_url(message_id)
    print(f"Rendering QR codes for {share_url}")

    images = QRCodeGenerator().render(share_url)

    out_dir.mkdir(parents=True, exist_ok=True)
    out_path = out_dir / qr_zip_filename(record.name)
    out_path.write_bytes(build_qr_zip(images))

    print(f"[OK] Wrote {len(images)} QR codes to {out_path}")
    return True


def main():
    import argparse

    parser = argparse.ArgumentParser(description='Export QR codes for a SayWith message')
    parser.add_argument('message_id', help='Message identifier')
    parser.add_argument('--out', default='.', help='Output directory (default: current directory)')
    args = parser.parse_args()

    success = export_qr_codes(args.message_id, Path(args.out))
    sys.exit(0 if success else 1)


if __name__ == '__main__':
    main()
