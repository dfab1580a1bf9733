"""Tests for configuration helpers."""

from brokerdesk.config import Settings, parse_comma_list, parse_connection_string


def test_parse_comma_list_defaults() -> None:
    assert parse_comma_list(None, ["a"]) == ["a"]


def test_parse_comma_list_splits_string() -> None:
    assert parse_comma_list("x, y, ,z", ["a"]) == ["x", "y", "z"]


def test_parse_connection_string_ignores_malformed_parts() -> None:
    parts = parse_connection_string("AccountName=acct; AccountKey=a=b==;junk;=x;Empty=")
    assert parts == {"AccountName": "acct", "AccountKey": "a=b=="}


def test_storage_credentials_prefer_explicit_keys() -> None:
    config = Settings(
        S3_ACCESS_KEY="key",
        S3_SECRET_KEY="secret",
        S3_ENDPOINT="http://minio:9000",
        STORAGE_CONNECTION_STRING="AccountName=other;AccountKey=other",
    )
    assert config.storage_credentials == {
        "access_key": "key",
        "secret_key": "secret",
        "endpoint": "http://minio:9000",
    }
    assert config.has_s3_credentials


def test_storage_credentials_from_connection_string() -> None:
    config = Settings(
        STORAGE_CONNECTION_STRING=(
            "DefaultEndpointsProtocol=https;AccountName=acct;AccountKey=s3cr3t;"
            "EndpointSuffix=storage.example.net"
        ),
    )
    assert config.storage_credentials == {
        "access_key": "acct",
        "secret_key": "s3cr3t",
        "endpoint": "https://acct.storage.example.net",
    }


def test_missing_credentials_select_local_mode() -> None:
    config = Settings(STORAGE_CONNECTION_STRING="AccountName=acct")
    assert config.storage_credentials == {}
    assert not config.has_s3_credentials


def test_is_production() -> None:
    assert Settings(ENVIRONMENT="production").is_production
    assert Settings(ENVIRONMENT="prod").is_production
    assert not Settings(ENVIRONMENT="testing").is_production


def test_allowed_upload_types_default() -> None:
    assert Settings().allowed_upload_types == [
        "image/jpeg",
        "image/png",
        "image/gif",
        "application/pdf",
    ]
