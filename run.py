"""
Run the API server.
Usage: python3 run.py   (from the project root; HOST / PORT come from settings)
"""
import uvicorn

from config import settings

if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
