from typing import Any

import boto3

from transcript_intake.config import Settings


def get_session(settings: Settings) -> boto3.Session:
    session_kwargs = {
        "region_name": settings.aws_region,
    }
    if settings.aws_access_key_id and settings.aws_secret_access_key:
        session_kwargs.update(
            aws_access_key_id=settings.aws_access_key_id,
            aws_secret_access_key=settings.aws_secret_access_key,
        )

    return boto3.Session(**session_kwargs)


def aws_client(service: str, settings: Settings) -> Any:
    return get_session(settings).client(service, region_name=settings.aws_region)
