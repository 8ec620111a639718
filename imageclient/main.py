"""Command-line client for the Image Service."""
from __future__ import annotations

import argparse
import asyncio
import getpass
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

import httpx

from imageclient.config import get_settings
from imageclient.models import Credentials, TransformationDraft
from imageclient.services.api import ImageServiceClient
from imageclient.services.errors import WorkflowError
from imageclient.services.library import ImageLibrary
from imageclient.services.session import AuthSession, TokenStore
from imageclient.services.transform import TransformRequestBuilder
from imageclient.services.upload import UploadCoordinator
from imageclient.utils.file_info import describe_file, format_size

logger = logging.getLogger(__name__)

_ACTIONS = {
    "register": "Registration",
    "login": "Login",
    "logout": "Logout",
    "images": "Listing images",
    "transformed": "Listing transformed images",
    "upload": "Upload",
    "transform": "Transformation",
    "download": "Download",
    "delete": "Delete",
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="imageclient", description="Image Service client")
    parser.add_argument("--api-url", help="Image Service base URL (default: IMAGE_API_BASE_URL)")
    parser.add_argument("--token-file", type=Path, help="Where the session token is kept")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    for name in ("register", "login"):
        p = sub.add_parser(name, help=f"{name.capitalize()} and remember the session")
        p.add_argument("--username")
        p.add_argument("--password")
        if name == "register":
            p.add_argument("--confirm-password")

    sub.add_parser("logout", help="Forget the saved session")
    p = sub.add_parser("images", help="List uploaded images")
    p.add_argument("--limit", type=int, default=0, help="Page size; 0 lists every image")
    p.add_argument("--page", type=int, default=0, help="Zero-based page, used when --limit is set")
    sub.add_parser("transformed", help="List transformed images")

    p = sub.add_parser("upload", help="Upload an image file")
    p.add_argument("path", type=Path)

    p = sub.add_parser("transform", help="Request a transformation of an uploaded image")
    p.add_argument("image_id")
    p.add_argument("--width", default="", help="Resize width (px)")
    p.add_argument("--height", default="", help="Resize height (px)")
    p.add_argument("--crop-width", default="")
    p.add_argument("--crop-height", default="")
    p.add_argument("--crop-x", default="")
    p.add_argument("--crop-y", default="")
    p.add_argument("--rotate", type=int, choices=(0, 90, 180, 270), default=0)
    p.add_argument("--format", choices=("jpeg", "png", "webp"), default="")
    p.add_argument("--grayscale", action="store_true")
    p.add_argument("--sepia", action="store_true")

    for name in ("download", "delete"):
        p = sub.add_parser(name, help=f"{name.capitalize()} an image")
        p.add_argument("image_id")
        if name == "download":
            p.add_argument("dest", type=Path, help="Target file or directory")
        p.add_argument("--transformed", action="store_true", help="Target a transformed image")

    return parser


def draft_from_args(args: argparse.Namespace) -> TransformationDraft:
    return TransformationDraft(
        resize={"width": args.width, "height": args.height},
        crop={"width": args.crop_width, "height": args.crop_height, "x": args.crop_x, "y": args.crop_y},
        rotate=args.rotate,
        format=args.format,
        filters={"grayscale": args.grayscale, "sepia": args.sepia},
    )


class ClientApp:
    """Wires the workflows together the way the dashboard uses them."""

    def __init__(self, client: ImageServiceClient, store: TokenStore) -> None:
        self.session = AuthSession(client, store)
        self.library = ImageLibrary(client)
        self.uploader = UploadCoordinator(client, on_committed=self._refresh_images)
        self.transformer = TransformRequestBuilder(client, on_applied=self._refresh_all)
        self.session.restore()

    async def _refresh_images(self) -> None:
        await self.library.refresh_images(self.session.require_token())

    async def _refresh_all(self) -> None:
        await self.library.refresh_all(self.session.require_token())

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def register(self, args: argparse.Namespace) -> None:
        creds = _prompt_credentials(args)
        confirm = args.confirm_password
        if confirm is None:
            confirm = getpass.getpass("Confirm password: ")
        await self.session.register(creds, confirm)
        print("Registration successful!")

    async def login(self, args: argparse.Namespace) -> None:
        await self.session.login(_prompt_credentials(args))
        print("Login successful!")

    async def logout(self, args: argparse.Namespace) -> None:
        self.session.logout()
        print("Logged out.")

    async def images(self, args: argparse.Namespace) -> None:
        images = await self.library.refresh_images(
            self.session.require_token(), page=args.page, limit=args.limit
        )
        self._warn_list_failure(self.library.images_error)
        if not images:
            print("No images uploaded yet.")
        for image in images:
            print(f"{image.id}\t{image.name or 'Image'}\t{format_size(image.file_size)}\t{image.content_type or 'Unknown'}")

    async def transformed(self, args: argparse.Namespace) -> None:
        items = await self.library.refresh_transformed(self.session.require_token())
        self._warn_list_failure(self.library.transformed_error)
        if not items:
            print("No transformed images yet.")
        for item in items:
            print(
                f"{item.id}\tfrom {item.original_image_id}\t"
                f"{format_size(item.file_size)}\t{item.content_type or 'Unknown'}"
            )

    async def upload(self, args: argparse.Namespace) -> None:
        token = self.session.require_token()
        self.uploader.select(describe_file(args.path))
        self.uploader.progress.subscribe(_print_progress)
        try:
            image = await self.uploader.upload_selected(token)
        finally:
            if self.uploader.progress.value:
                print()
        print(f"Upload successful! Image id: {image.id}")

    async def transform(self, args: argparse.Namespace) -> None:
        token = self.session.require_token()
        spec = await self.transformer.apply(args.image_id, draft_from_args(args), token)
        print(f"Transformation applied successfully! Sent: {spec.to_payload()}")

    async def download(self, args: argparse.Namespace) -> None:
        target = await self.library.download(
            args.image_id, self.session.require_token(), args.dest, transformed=args.transformed
        )
        print(f"Saved to {target}")

    async def delete(self, args: argparse.Namespace) -> None:
        await self.library.delete(args.image_id, self.session.require_token(), transformed=args.transformed)
        print(f"Deleted {args.image_id}")

    def _warn_list_failure(self, error: Optional[WorkflowError]) -> None:
        if error is not None:
            print(f"Warning: {error.message}", file=sys.stderr)


def _prompt_credentials(args: argparse.Namespace) -> Credentials:
    username = args.username if args.username is not None else input("Username: ")
    password = args.password if args.password is not None else getpass.getpass("Password: ")
    return Credentials(username=username, password=password)


def _print_progress(value: int) -> None:
    filled = value // 5
    print(f"\rUpload progress: [{'#' * filled}{'.' * (20 - filled)}] {value:3d}%", end="", flush=True)


async def run(args: argparse.Namespace, *, transport: Optional[httpx.AsyncBaseTransport] = None) -> int:
    settings = get_settings()
    store = TokenStore(args.token_file or settings.token_file)
    async with ImageServiceClient(
        base_url=args.api_url or settings.api_base_url,
        timeout=settings.http_timeout,
        transport=transport,
    ) as client:
        app = ClientApp(client, store)
        try:
            await getattr(app, args.command)(args)
        except WorkflowError as exc:
            logger.debug("%s failed", args.command, exc_info=True)
            print(f"{_ACTIONS[args.command]} failed: {exc.message}", file=sys.stderr)
            return 1
    return 0


def main(argv: Optional[Sequence[str]] = None, *, transport: Optional[httpx.AsyncBaseTransport] = None) -> int:
    args = build_parser().parse_args(argv)
    level = logging.DEBUG if args.verbose else get_settings().log_level.upper()
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    return asyncio.run(run(args, transport=transport))


if __name__ == "__main__":
    sys.exit(main())
