import os
import uvicorn

if __name__ == "__main__":
    host = os.environ.get("CONNIPTIONS_HOST", "localhost")
    port = int(os.environ.get("CONNIPTIONS_PORT", "4000"))
    uvicorn.run(
        "conniptions.server:app",
        host=host,
        port=port,
        reload=True,
        reload_dirs=["conniptions"],
    )
