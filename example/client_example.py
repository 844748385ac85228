from x402_permit.clients.stack import create_x402_stack
from x402_permit.logs import configure_logging
import httpx

# Reads X402_PRIVATE_KEY, X402_ROUTER_URL ... from the environment or .env
stack = create_x402_stack()


async def main():
    try:
        async with stack.client(
            base_url=stack.env.router_url,
            timeout=httpx.Timeout(60.0, read=120.0),
        ) as client:
            return await client.post(
                "/v1/chat/completions",
                json={"model": "gpt-4o-mini", "messages": [{"role": "user", "content": "ping"}]},
            )
    finally:
        await stack.aclose()


async def main_with_sdk_client():
    # Clients created inside the block (e.g. by an SDK) pay transparently
    with stack.installer.installed():
        async with httpx.AsyncClient(base_url=stack.env.router_url) as client:
            return await client.get("/v1/models")


if __name__ == "__main__":
    import asyncio
    configure_logging()
    response = asyncio.run(main())
    print("Response:", response.status_code, response.text)
