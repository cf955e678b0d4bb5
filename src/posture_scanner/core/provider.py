"""
AWS provider for authentication and service client management
"""

import logging
import threading
from typing import Optional
import boto3
from botocore.exceptions import BotoCoreError, ClientError


class AWSProvider:
    """AWS provider for authentication and service client management"""

    def __init__(self, access_key: str = None, secret_key: str = None,
                 session_token: str = None, region: str = 'us-east-1',
                 profile: str = None, session: boto3.Session = None):
        self.access_key = access_key
        self.secret_key = secret_key
        self.session_token = session_token
        self.region = region
        self.profile = profile
        self.session = session
        self._account_id: Optional[str] = None
        self._clients = {}
        self._clients_lock = threading.Lock()

        if self.session is None:
            self._initialize_session()

    def _initialize_session(self):
        """Initialize boto3 session with provided credentials"""
        try:
            if self.profile:
                self.session = boto3.Session(profile_name=self.profile, region_name=self.region)
            elif self.access_key and self.secret_key:
                self.session = boto3.Session(
                    aws_access_key_id=self.access_key,
                    aws_secret_access_key=self.secret_key,
                    aws_session_token=self.session_token,
                    region_name=self.region
                )
            else:
                # Use environment variables or instance metadata
                self.session = boto3.Session(region_name=self.region)

        except BotoCoreError as e:
            raise RuntimeError(f"Failed to initialize AWS session: {str(e)}") from e

    @property
    def account_id(self) -> str:
        """AWS account ID, looked up on first use"""
        if self._account_id is None:
            try:
                sts_client = self.get_client('sts')
                self._account_id = sts_client.get_caller_identity()['Account']
            except (BotoCoreError, ClientError) as e:
                logging.warning(f"Could not retrieve account ID: {str(e)}")
                self._account_id = "unknown"
        return self._account_id

    def get_client(self, service_name: str, region: str = None):
        """Get boto3 client for AWS service"""
        if region is None:
            region = self.region

        client_key = f"{service_name}_{region}"
        with self._clients_lock:
            if client_key not in self._clients:
                self._clients[client_key] = self.session.client(
                    service_name, region_name=region
                )
            return self._clients[client_key]
