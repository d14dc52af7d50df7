import argparse
import os
import sys

import uvicorn

# Add project root to path
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

parser = argparse.ArgumentParser(description="Site Config API server")
parser.add_argument("--host", type=str, default="0.0.0.0", help="Host to bind")
parser.add_argument("--port", type=int, default=8000, help="Port to bind")
parser.add_argument("--reload", action="store_true", help="Reload on code changes (development)")
args = parser.parse_args()

if __name__ == "__main__":
    uvicorn.run("sitecfg.main:app", host=args.host, port=args.port, reload=args.reload)
