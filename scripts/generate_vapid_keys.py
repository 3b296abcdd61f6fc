"""Generate a VAPID key pair for web push.

Run once and paste the output into ``.env``:
    python -m scripts.generate_vapid_keys
"""
from __future__ import annotations

import argparse

from app.core.webpush.vapid import generate_key_pair


def main() -> None:
    parser = argparse.ArgumentParser(description="Generate VAPID keys for web push")
    parser.add_argument(
        "--subject",
        default="mailto:admin@studytraka.com",
        help="Contact URI sent as the VAPID 'sub' claim",
    )
    args = parser.parse_args()

    public_key, private_key = generate_key_pair()
    print(f"VAPID_PUBLIC_KEY={public_key}")
    print(f"VAPID_PRIVATE_KEY={private_key}")
    print(f"VAPID_SUBJECT={args.subject}")
    print("\nKeep VAPID_PRIVATE_KEY secret; only the public key goes to browsers.")


if __name__ == "__main__":
    main()
