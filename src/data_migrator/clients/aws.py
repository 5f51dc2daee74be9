from __future__ import annotations

from typing import Any, Optional

import boto3
from botocore.config import Config

from ..config import Settings

# Runs never retry: a failed call fails its stage.
_NO_RETRIES = {"total_max_attempts": 1, "mode": "standard"}


def client_config(*, read_timeout: float, connect_timeout: float, max_pool_connections: int = 10) -> Config:
    return Config(
        read_timeout=read_timeout,
        connect_timeout=connect_timeout,
        retries=dict(_NO_RETRIES),
        max_pool_connections=max_pool_connections,
    )


def make_client(service: str, *, region: Optional[str], config: Config, session: Optional[boto3.session.Session] = None) -> Any:
    session = session or boto3.session.Session()
    return session.client(service, region_name=region, config=config)


def lambda_client(settings: Settings, session: Optional[boto3.session.Session] = None) -> Any:
    cfg = client_config(read_timeout=settings.invoke_timeout, connect_timeout=settings.connect_timeout)
    return make_client("lambda", region=settings.region, config=cfg, session=session)


def s3_client(settings: Settings, session: Optional[boto3.session.Session] = None) -> Any:
    cfg = client_config(read_timeout=settings.fetch_timeout, connect_timeout=settings.connect_timeout)
    return make_client("s3", region=settings.region, config=cfg, session=session)


def dynamodb_client(settings: Settings, session: Optional[boto3.session.Session] = None) -> Any:
    # One pooled connection per concurrent writer.
    cfg = client_config(
        read_timeout=settings.write_timeout,
        connect_timeout=settings.connect_timeout,
        max_pool_connections=max(10, settings.write_concurrency),
    )
    return make_client("dynamodb", region=settings.region, config=cfg, session=session)
