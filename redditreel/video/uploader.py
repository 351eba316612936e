"""YouTube upload via the Data API v3.

OAuth credentials come from an installed-app client secret file; the granted
token is cached in upload.token_path so later runs upload without a browser.
"""

from dataclasses import dataclass, field
from pathlib import Path

from google.auth.exceptions import GoogleAuthError, RefreshError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from googleapiclient.http import MediaFileUpload
from httplib2 import HttpLib2Error

from redditreel.config import UploadConfig
from redditreel.errors import UploadError
from redditreel.runlog import RunLog

SCOPES = ["https://www.googleapis.com/auth/youtube.upload"]

# YouTube rejects longer titles
MAX_TITLE_LENGTH = 100

# Network and auth failures below the API layer
TRANSPORT_ERRORS = (GoogleAuthError, HttpLib2Error, OSError)


@dataclass
class UploadRequest:
    video_path: Path
    title: str
    description: str
    tags: list[str] = field(default_factory=list)
    category_id: str = "24"
    privacy_status: str = "private"

    def body(self) -> dict:
        return {
            "snippet": {
                "title": self.title[:MAX_TITLE_LENGTH],
                "description": self.description,
                "tags": self.tags,
                "categoryId": self.category_id,
            },
            "status": {
                "privacyStatus": self.privacy_status,
                "selfDeclaredMadeForKids": False,
            },
        }


class YouTubeUploader:
    def __init__(self, config: UploadConfig, log: RunLog | None = None):
        self.config = config
        self.log = log
        self._service = None

    def _credentials(self) -> Credentials:
        token_path = self.config.token_path
        creds = None
        if token_path and token_path.exists():
            creds = Credentials.from_authorized_user_file(str(token_path), SCOPES)

        if creds and creds.valid:
            return creds

        if creds and creds.expired and creds.refresh_token:
            try:
                creds.refresh(Request())
            except RefreshError as e:
                if self.log is not None:
                    self.log.warn(f"YouTube token refresh failed ({e}), re-authenticating")
                creds = None

        if not creds or not creds.valid:
            secret = self.config.client_secret_path
            if secret is None or not secret.exists():
                raise UploadError(f"YouTube client secret file not found: {secret}")
            try:
                flow = InstalledAppFlow.from_client_secrets_file(str(secret), SCOPES)
                creds = flow.run_local_server(port=0)
            except ValueError as e:
                raise UploadError(f"YouTube authorisation failed: {e}") from e

        if token_path:
            token_path.parent.mkdir(parents=True, exist_ok=True)
            token_path.write_text(creds.to_json(), encoding="utf-8")
        return creds

    def _youtube(self):
        if self._service is None:
            self._service = build("youtube", "v3", credentials=self._credentials())
        return self._service

    def upload(self, request: UploadRequest) -> str:
        """Upload a finished video and return the YouTube video id."""
        path = Path(request.video_path)
        if not path.is_file():
            raise UploadError(f"Video file not found: {path}")

        body = request.body()
        try:
            media = MediaFileUpload(str(path), chunksize=-1, resumable=True, mimetype="video/mp4")
            insert = self._youtube().videos().insert(
                part=",".join(body.keys()), body=body, media_body=media,
            )
            response = None
            while response is None:
                status, response = insert.next_chunk()
                if status and self.log is not None:
                    self.log.detail(f"Uploading... {int(status.progress() * 100)}%")
        except HttpError as e:
            raise UploadError(f"YouTube upload failed: {e}") from e
        except TRANSPORT_ERRORS as e:
            raise UploadError(f"YouTube upload failed ({type(e).__name__}): {e}") from e

        video_id = (response or {}).get("id")
        if not video_id:
            raise UploadError("YouTube did not return a video id")
        return video_id
