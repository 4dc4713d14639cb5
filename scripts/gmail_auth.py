#!/usr/bin/env python3
"""
One-time Gmail OAuth2 authorization using the copy-paste flow.

Writes the token file the pipeline reads from GMAIL_TOKEN_PATH.
"""

import json
import os
import sys

from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import Flow
from googleapiclient.discovery import build

# Keep in sync with the scopes the pipeline requests
SCOPES = [
    "https://www.googleapis.com/auth/gmail.modify",
    "https://www.googleapis.com/auth/gmail.labels",
    "https://www.googleapis.com/auth/gmail.send",
]

CREDENTIALS_PATH = os.environ.get("GMAIL_CREDENTIALS_PATH", "secrets/gmail-oauth-credentials.json")
TOKEN_PATH = os.environ.get("GMAIL_TOKEN_PATH", "secrets/gmail_token.json")


def main() -> int:
    print("=" * 70)
    print("Gmail OAuth2 Authorization for Contract Intake")
    print("=" * 70)

    with open(CREDENTIALS_PATH, "r") as f:
        client_config = json.load(f)

    creds = None
    if os.path.exists(TOKEN_PATH):
        creds = Credentials.from_authorized_user_file(TOKEN_PATH, SCOPES)

    if not creds or not creds.valid:
        if creds and creds.expired and creds.refresh_token:
            print("Refreshing token...")
            creds.refresh(Request())
        else:
            flow = Flow.from_client_config(
                client_config,
                scopes=SCOPES,
                redirect_uri="urn:ietf:wg:oauth:2.0:oob",
            )
            auth_url, _ = flow.authorization_url(prompt="consent")

            print("\nSTEP 1: Open this URL in your browser:\n")
            print(auth_url)
            print("\nSTEP 2: Sign in with the mailbox that receives purchase agreements")
            print("        and allow all requested permissions.\n")

            code = input("STEP 3: Paste the authorization code here: ").strip()
            flow.fetch_token(code=code)
            creds = flow.credentials

        os.makedirs(os.path.dirname(TOKEN_PATH) or ".", exist_ok=True)
        with open(TOKEN_PATH, "w") as token:
            token.write(creds.to_json())
        print(f"\nToken saved to: {TOKEN_PATH}")

    print("\nTesting Gmail API connection...")
    try:
        service = build("gmail", "v1", credentials=creds, cache_discovery=False)
        profile = service.users().getProfile(userId="me").execute()
    except Exception as e:
        print(f"\nError: {e}")
        return 1

    print(f"Connected as {profile['emailAddress']}")
    print("Setup complete. Label incoming contracts with GMAIL_INBOX_LABEL to queue them.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
