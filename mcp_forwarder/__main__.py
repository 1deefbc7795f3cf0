import uvicorn

from mcp_forwarder.vars import HOST, PORT, SERVER_KEEP_ALIVE_TIMEOUT_MS


def main() -> None:
    uvicorn.run(
        "mcp_forwarder.server:app",
        host=HOST,
        port=PORT,
        timeout_keep_alive=max(1, SERVER_KEEP_ALIVE_TIMEOUT_MS // 1000),
        proxy_headers=True,
    )


if __name__ == "__main__":
    main()
