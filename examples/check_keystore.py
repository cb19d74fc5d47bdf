import asyncio
import os

from dotenv import load_dotenv

from subreaper.keystore import KeyStore, default_credentials_dir
from subreaper.rpc import NearRpc, get_rpc_url
from subreaper.types import AccessKeyNotFound, KeystoreError, RpcError


async def check_keystore():
    """Report which local keys still exist on-chain, without changing anything."""
    load_dotenv()
    network = os.getenv("NEAR_NETWORK", "testnet")
    store = KeyStore(default_credentials_dir(network))  # type: ignore[arg-type]

    try:
        entries = store.entries()
    except KeystoreError as e:
        print(f"Error: {e}")
        return

    print(f"Checking {len(entries)} keys in {store.directory}...")

    async with NearRpc(get_rpc_url(network)) as rpc:  # type: ignore[arg-type]
        for account_id, path in entries:
            try:
                credential = store.load(path)
                access_key = await rpc.view_access_key(
                    credential.account_id, credential.public_key
                )
                print(f"  {account_id}: live (nonce {access_key['nonce']})")
            except AccessKeyNotFound:
                print(f"  {account_id}: gone from chain, key file can be removed")
            except (KeystoreError, RpcError) as e:
                print(f"  {account_id}: error {e}")
            await asyncio.sleep(0.2)  # Rate limiting


if __name__ == "__main__":
    asyncio.run(check_keystore())
