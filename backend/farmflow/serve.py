# backend/farmflow/serve.py
"""
Production entry point: `python -m farmflow.serve`.

Reads HOST / PORT / WORKERS / RELOAD / LOG_LEVEL and optional SSL_* paths
from the environment and hands them to uvicorn.
"""

import os
from typing import Dict

import uvicorn

_TRUTHY = {"1", "true", "yes", "on"}


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in _TRUTHY


def _ssl_options() -> Dict[str, str]:
    env_to_option = {
        "SSL_CERTFILE": "ssl_certfile",
        "SSL_KEYFILE": "ssl_keyfile",
        "SSL_CA_CERTS": "ssl_ca_certs",
        "SSL_KEYFILE_PASSWORD": "ssl_keyfile_password",
    }
    return {option: os.environ[env] for env, option in env_to_option.items() if os.getenv(env)}


def main() -> None:
    reload_enabled = _env_flag("RELOAD")
    # uvicorn ignores workers when reload is on
    workers = 1 if reload_enabled else int(os.getenv("WORKERS", "1"))

    uvicorn.run(
        "farmflow.main:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
        reload=reload_enabled,
        workers=workers,
        log_level=os.getenv("LOG_LEVEL", "info").lower(),
        proxy_headers=True,
        forwarded_allow_ips=os.getenv("FORWARDED_ALLOW_IPS", "*"),
        **_ssl_options(),
    )


if __name__ == "__main__":
    main()
