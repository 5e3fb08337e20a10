#!/usr/bin/python3

import uvicorn

import config

# --------------------------
# Entrypoint
# --------------------------

if __name__ == "__main__":
  uvicorn.run("api:app", host=config.HOST, port=config.PORT, log_level=config.LOG_LEVEL.lower())
