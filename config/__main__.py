"""Command line interface for checking configuration loading"""
from . import settings_conf, get_storage_api_key, get_wallet_private_key
from .lib.load_settings_conf import DEFAULTS
from pathlib import Path

def main():
    """Display loaded configuration"""
    print("\nSettings Configuration:")
    print("-" * 50)
    for key, value in settings_conf.items():
        print(f"{key}: {value}")

    print("\nSecrets:")
    print("-" * 50)
    print(f"storage api key: {'set' if get_storage_api_key() else 'NOT SET'}")
    print(f"wallet private key: {'set' if get_wallet_private_key() else 'NOT SET'}")

    # Save example configuration file
    examples_dir = Path("examples")
    examples_dir.mkdir(exist_ok=True)

    with open(examples_dir / "settings.conf.example", "w") as f:
        f.write("[DEFAULT]\n")
        for key, value in DEFAULTS.items():
            f.write(f"{key} = {value}\n")
    print(f"\nWrote {examples_dir / 'settings.conf.example'}")

if __name__ == "__main__":
    main()
