import asyncio
import json

import httpx
import pytest

from imageclient.models import TransformationDraft
from imageclient.services.errors import ErrorKind, TransformError
from imageclient.services.transform import TransformRequestBuilder, TransformState

TOKEN = "tok-123"


class RefreshCounter:
    def __init__(self):
        self.calls = 0

    async def __call__(self):
        self.calls += 1


def test_empty_draft_fails_without_network(client, service):
    refresh = RefreshCounter()
    builder = TransformRequestBuilder(client, on_applied=refresh)

    with pytest.raises(TransformError) as excinfo:
        asyncio.run(builder.apply("img1", TransformationDraft(rotate=0), TOKEN))

    assert excinfo.value.kind is ErrorKind.EMPTY_TRANSFORMATION
    assert service.calls == []
    assert refresh.calls == 0
    assert builder.state is not TransformState.SUBMITTING


def test_apply_sends_normalized_spec_and_refreshes(client, service):
    service.route("POST", "/images/img1/transform", httpx.Response(200, text="ok"))
    refresh = RefreshCounter()
    builder = TransformRequestBuilder(client, on_applied=refresh)
    draft = TransformationDraft(rotate=90, format="webp", filters={"grayscale": True, "sepia": False})

    asyncio.run(builder.apply("img1", draft, TOKEN))

    (request,) = service.requests_to("POST", "/images/img1/transform")
    assert json.loads(request.content) == {
        "transformations": {"rotate": 90, "format": "webp", "filters": {"grayscale": True}}
    }
    assert request.headers["Authorization"] == f"Bearer {TOKEN}"
    assert refresh.calls == 1
    assert builder.state is TransformState.APPLIED
    assert builder.draft == TransformationDraft()


def test_backend_rejection_keeps_draft_and_message(client, service):
    service.route("POST", "/images/img1/transform", httpx.Response(400, text="Unsupported format"))
    refresh = RefreshCounter()
    builder = TransformRequestBuilder(client, on_applied=refresh)
    builder.edit(format="png")

    with pytest.raises(TransformError) as excinfo:
        asyncio.run(builder.apply("img1", None, TOKEN))

    assert excinfo.value.kind is ErrorKind.TRANSFORM_REJECTED
    assert excinfo.value.message == "Unsupported format"
    assert excinfo.value.status == 400
    assert builder.state is TransformState.REJECTED
    assert builder.draft.format == "png"
    assert refresh.calls == 0


def test_edit_and_reset_state_transitions(client, service):
    builder = TransformRequestBuilder(client)
    assert builder.state is TransformState.IDLE

    builder.edit(resize={"width": "300"})
    assert builder.state is TransformState.EDITING
    assert builder.build(builder.draft).to_payload() == {"resize": {"width": 300}}

    builder.reset()
    assert builder.state is TransformState.IDLE
    assert builder.draft == TransformationDraft()
    assert service.calls == []


def test_second_apply_while_submitting_is_refused(client, service):
    async def scenario():
        release = asyncio.Event()

        async def slow_transform(image_id, payload, token):
            await release.wait()

        client.transform = slow_transform
        builder = TransformRequestBuilder(client)
        draft = TransformationDraft(rotate=180)
        first = asyncio.create_task(builder.apply("img1", draft, TOKEN))
        await asyncio.sleep(0)
        assert builder.state is TransformState.SUBMITTING
        with pytest.raises(TransformError) as excinfo:
            await builder.apply("img1", draft, TOKEN)
        release.set()
        await first
        return excinfo.value, builder.state

    error, state = asyncio.run(scenario())
    assert error.kind is ErrorKind.OPERATION_IN_PROGRESS
    assert state is TransformState.APPLIED


def test_fractional_size_counts_as_unset(client):
    builder = TransformRequestBuilder(client)

    builder.edit(resize={"width": 640.5, "height": 480.0})

    assert builder.build(builder.draft).to_payload() == {"resize": {"height": 480}}


def test_invalid_edit_raises_transform_error(client):
    builder = TransformRequestBuilder(client)
    builder.edit(format="png")

    with pytest.raises(TransformError) as excinfo:
        builder.edit(rotate=45)

    assert excinfo.value.kind is ErrorKind.INVALID_TRANSFORMATION
    assert "rotate" in excinfo.value.message
    assert builder.draft.format == "png"
    assert builder.draft.rotate == 0
    assert builder.state is TransformState.EDITING
