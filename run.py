#!/usr/bin/env python3
"""
Run script for the SongLingo pronunciation backend
"""
import uvicorn

from songlingo.config.settings import settings
from songlingo.main import app

if __name__ == "__main__":
    uvicorn.run(app, host=settings.host, port=settings.port, reload=settings.debug)
