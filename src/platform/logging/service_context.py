"""
Service identity stamped on every log line.

Format: '<service>@<environment>:<instance>' so interleaved logs from several
API replicas and sweeper workers can be told apart.
"""

import os
from functools import lru_cache
import socket


@lru_cache(maxsize=1)
def get_service_context() -> str:
    service_name = os.getenv('SERVICE_NAME', 'ticket-lifecycle')
    deploy_env = os.getenv('DEPLOY_ENV', 'local_dev')

    # Container hostnames are unique per replica; fall back to the PID locally
    instance = os.getenv('HOSTNAME') or socket.gethostname() or str(os.getpid())
    return f'{service_name}@{deploy_env}:{instance[:12]}:{os.getpid()}'
