import boto3

from app.settings import Settings

def aws_session(settings: Settings):
    """Returns a boto3 session and the client kwargs for the configured endpoint."""
    session = boto3.session.Session(region_name=settings.aws_region)
    kwargs = {
        "aws_access_key_id": settings.aws_access_key_id,
        "aws_secret_access_key": settings.aws_secret_access_key,
    }
    if settings.aws_endpoint_url:
        kwargs["endpoint_url"] = settings.aws_endpoint_url
    return session, kwargs
