"""Command line interface for testing configuration loading"""
from . import settings_conf
from pathlib import Path

SECRET_KEYS = {'pinata_jwt', 'private_key', 'jwt_secret'}

def main():
    """Display loaded configuration"""
    print("\nSettings Configuration:")
    print("-" * 50)
    for key, value in settings_conf.items():
        if key in SECRET_KEYS and value:
            value = '********'
        print(f"{key}: {value}")

    # Save example configuration file
    examples_dir = Path("examples")
    examples_dir.mkdir(exist_ok=True)

    with open(examples_dir / "settings.conf.example", "w") as f:
        f.write("""[DEFAULT]
# Document store (PostgreSQL or CockroachDB)
db_url = postgresql://root@localhost:26257/nftmarket?sslmode=disable

# Chain endpoint and deployed contracts
rpc_url = https://sepolia.infura.io/v3/<project-id>
marketplace_address = 0x0000000000000000000000000000000000000000
token_address = 0x0000000000000000000000000000000000000000
# Leave empty to use the provider's unlocked account
private_key =

# Pinning service
pinata_jwt = <jwt>
gateway_url = https://gateway.pinata.cloud/ipfs/

# Sessions
jwt_secret = <random secret shared with the identity provider>
""")

if __name__ == "__main__":
    main()
