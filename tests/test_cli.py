import json

import httpx
import pytest

from imageclient.main import build_parser, draft_from_args, main

API = "http://api.test"
IMAGE = {"id": "img1", "name": "photo.png", "contentType": "image/png", "fileSize": 2048}


@pytest.fixture
def cli(tmp_path, transport):
    token_file = tmp_path / "session.json"

    def invoke(*argv):
        return main(["--api-url", API, "--token-file", str(token_file), *argv], transport=transport)

    invoke.token_file = token_file
    return invoke


def test_login_then_upload(cli, service, png_file, capsys):
    service.route("POST", "/login", httpx.Response(200, text="jwt"))
    service.route("POST", "/images/upload-url", httpx.Response(200, json={"uploadUrl": "https://store/x", "filename": "x.png"}))
    service.route("PUT", "https://store/x", httpx.Response(200))
    service.route("POST", "/images/save-metadata", httpx.Response(200, json=IMAGE))
    service.route("GET", "/images", httpx.Response(200, json=[IMAGE]))

    assert cli("login", "--username", "ann", "--password", "secret1") == 0
    assert json.loads(cli.token_file.read_text()) == {"token": "jwt"}
    assert cli("upload", str(png_file)) == 0

    out = capsys.readouterr().out
    assert "Login successful!" in out
    assert "100%" in out
    assert "Upload successful! Image id: img1" in out
    assert service.count("GET", "/images") == 1


def test_commands_need_a_session(cli, service, capsys):
    assert cli("images") == 1
    assert "Listing images failed: Not logged in" in capsys.readouterr().err
    assert service.calls == []


def test_empty_transform_is_reported(cli, service, capsys):
    cli.token_file.write_text(json.dumps({"token": "jwt"}))
    assert cli("transform", "img1") == 1
    assert "Transformation failed: Please specify at least one transformation" in capsys.readouterr().err
    assert service.calls == []


def test_transform_refreshes_both_lists(cli, service, capsys):
    cli.token_file.write_text(json.dumps({"token": "jwt"}))
    service.route("POST", "/images/img1/transform", httpx.Response(200, text="ok"))
    service.route("GET", "/images", httpx.Response(200, json=[IMAGE]))
    service.route("GET", "/images/transformed-images", httpx.Response(200, json=[]))

    assert cli("transform", "img1", "--rotate", "90", "--format", "webp", "--grayscale") == 0

    (request,) = service.requests_to("POST", "/images/img1/transform")
    assert json.loads(request.content) == {
        "transformations": {"rotate": 90, "format": "webp", "filters": {"grayscale": True}}
    }
    assert service.count("GET", "/images") == 1
    assert service.count("GET", "/images/transformed-images") == 1


def test_list_failure_is_a_warning(cli, service, capsys):
    cli.token_file.write_text(json.dumps({"token": "jwt"}))
    service.route("GET", "/images", httpx.Response(500, text="boom"))

    assert cli("images") == 0
    captured = capsys.readouterr()
    assert "No images uploaded yet." in captured.out
    assert "Warning: boom" in captured.err


def test_logout_removes_token(cli, capsys):
    cli.token_file.write_text(json.dumps({"token": "jwt"}))
    assert cli("logout") == 0
    assert not cli.token_file.exists()


def test_draft_from_args_maps_every_option():
    args = build_parser().parse_args(
        ["transform", "img1", "--width", "640", "--crop-width", "10", "--crop-height", "20", "--sepia"]
    )
    draft = draft_from_args(args)
    assert draft.resize.width == "640"
    assert draft.resize.height == ""
    assert draft.crop.width == "10"
    assert draft.filters.sepia is True
    assert draft.rotate == 0


def test_images_paging_options(cli, service, capsys):
    cli.token_file.write_text(json.dumps({"token": "jwt"}))
    service.route("GET", "/images", httpx.Response(200, json=[IMAGE]))

    assert cli("images", "--limit", "5", "--page", "1") == 0

    (request,) = service.requests_to("GET", "/images")
    assert request.url.params["limit"] == "5"
    assert request.url.params["page"] == "1"
    assert "img1\tphoto.png" in capsys.readouterr().out


def test_login_reports_unsaved_session(tmp_path, transport, service, capsys):
    blocker = tmp_path / "blocker"
    blocker.write_text("")
    service.route("POST", "/login", httpx.Response(200, text="jwt"))

    argv = ["--api-url", API, "--token-file", str(blocker / "session.json"), "login", "--username", "ann", "--password", "secret1"]

    assert main(argv, transport=transport) == 1
    assert "Login failed: Could not save session" in capsys.readouterr().err
