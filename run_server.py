import uvicorn
import os

if __name__ == "__main__":
    port = int(os.environ.get("PORT", "8000"))

    print("Starting Nostr Bridge API Server...")
    print(f"Docs available at: http://localhost:{port}/docs")

    uvicorn.run(
        "bridge.api.server:app",
        host="0.0.0.0",
        port=port,
        reload=False
    )
