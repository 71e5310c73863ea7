# tests/e2e/conftest.py
"""
Fixtures for the end-to-end tests.

This module spins up a MinIO container with pytest-docker and creates an
isolated bucket per test function. The tests only run when PUBLISH_E2E=1.
"""

import uuid
from pathlib import Path
from typing import Any, Dict, Generator

import boto3
import pytest
import requests
from botocore.config import Config as BotoConfig
from botocore.exceptions import ClientError
from requests.exceptions import ConnectionError

S3_ACCESS_KEY: str = "minio-key"
S3_SECRET_KEY: str = "minio-secret"
S3_REGION: str = "us-east-1"


@pytest.fixture(scope="session")
def docker_compose_file(pytestconfig: pytest.Config) -> str:
    """
    Locate the docker-compose.yml file for the end-to-end suite.

    Args:
        pytestconfig (pytest.Config): The pytest configuration objects.

    Returns:
        str: The absolute path to the docker-compose.yml file.
    """
    return str(Path(__file__).parent / "docker-compose.yml")


@pytest.fixture(scope="session")
def docker_compose_project_name() -> str:
    return "s3-publish-tests"


def _is_s3_responsive(url: str) -> bool:
    """
    Check if the MinIO health endpoint is responsive.

    Args:
        url (str): The base URL of the MinIO API.

    Returns:
        bool: True if the service is responsive, False otherwise.
    """
    try:
        response: requests.Response = requests.get(f"{url}/minio/health/live")
        return response.status_code == 200
    except ConnectionError:
        return False


@pytest.fixture(scope="session")
def s3_service(docker_ip: str, docker_services: Any) -> Dict[str, Any]:
    """
    Ensure the MinIO service is running and return its connection details.

    Args:
        docker_ip (str): The IP address of the Docker host.
        docker_services (Any): The pytest-docker services fixture.

    Returns:
        Dict[str, Any]: Connection details for boto clients.
    """
    port: int = docker_services.port_for("minio", 9000)
    api_url: str = f"http://{docker_ip}:{port}"
    docker_services.wait_until_responsive(
        timeout=30.0, pause=0.1, check=lambda: _is_s3_responsive(api_url)
    )
    return {
        "endpoint_url": api_url,
        "aws_access_key_id": S3_ACCESS_KEY,
        "aws_secret_access_key": S3_SECRET_KEY,
        "region_name": S3_REGION,
    }


@pytest.fixture(scope="function")
def s3_bucket(s3_service: Dict[str, Any]) -> Generator[str, None, None]:
    """
    Create a unique bucket for one test and remove it afterwards.

    Args:
        s3_service (Dict[str, Any]): Connection details for MinIO.

    Yields:
        str: The bucket name.
    """
    bucket_name: str = f"publish-test-{uuid.uuid4()}"
    boto_config: BotoConfig = BotoConfig(
        retries={"max_attempts": 0, "mode": "standard"}
    )
    resource: Any = boto3.resource("s3", **s3_service, config=boto_config)
    resource.create_bucket(Bucket=bucket_name)

    yield bucket_name

    try:
        bucket_obj: Any = resource.Bucket(bucket_name)
        bucket_obj.objects.all().delete()
        bucket_obj.delete()
    except ClientError as e:
        if e.response["Error"]["Code"] != "NoSuchBucket":
            raise
