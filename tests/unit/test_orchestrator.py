import asyncio
import json

import pytest
from unittest.mock import AsyncMock, Mock, patch

from soprano.agent.interpreter import IntentKind, RecognizedIntent
from soprano.agent.orchestrator import CONFIRM_QUESTION, DialogueOrchestrator, FormBindings
from soprano.agent.state import DialogueMode, FieldBinding
from soprano.core.exceptions import CompletionError, DocumentCaptureError, SessionError, UserCancelledError
from soprano.forms.definitions import LOAN_APPLICATION_FIELDS
from soprano.models.audio.types import VoiceStatus
from soprano.services.document_scan_service import DocumentData, DocumentScanService
from soprano.services.visual_guide import ElementBounds, RegisteredElement, VisualGuideCoordinator


async def run_turns(orchestrator: DialogueOrchestrator, count: int) -> None:
    for _ in range(count):
        await orchestrator.finish_listening()


@pytest.mark.asyncio
async def test_end_to_end_upi_payment(make_orchestrator, upi_fields, form_bindings):
    orchestrator = make_orchestrator(["arvind at paytm", "five hundred rupees", "skip"])

    await orchestrator.start_session(upi_fields, form_bindings)
    await run_turns(orchestrator, 3)

    form_bindings.submit.assert_awaited_once_with({"upiId": "arvind@paytm", "amount": 500, "note": None})
    assert not orchestrator.is_guided_active
    assert not orchestrator.is_listening
    assert orchestrator.status == VoiceStatus.IDLE


@pytest.mark.asyncio
async def test_start_session_greets_and_listens(make_orchestrator, upi_fields, form_bindings, player, recorder):
    orchestrator = make_orchestrator()

    await orchestrator.start_session(upi_fields, form_bindings)

    assert player.spoken == [f"I'll help you fill this form. {upi_fields[0].prompt}"]
    assert orchestrator.is_guided_active
    assert orchestrator.status == VoiceStatus.LISTENING
    assert len(recorder.live_handles) == 1
    assert orchestrator.progress().current == 1


@pytest.mark.asyncio
async def test_fill_calls_field_binding(make_orchestrator, upi_fields, form_bindings):
    orchestrator = make_orchestrator(["arvind at paytm"])

    await orchestrator.start_session(upi_fields, form_bindings)
    await run_turns(orchestrator, 1)

    form_bindings.fields["upiId"].set_value.assert_called_once_with("arvind@paytm")
    form_bindings.fields["upiId"].validate_on_blur.assert_called_once()
    assert orchestrator.current_field().name == "amount"


@pytest.mark.asyncio
async def test_validation_failure_stays_on_field(make_orchestrator, upi_fields, form_bindings, player):
    orchestrator = make_orchestrator(["arvind at paytm", "one lakh"])
    bindings = FormBindings(fields=form_bindings.fields, submit=form_bindings.submit, get_snapshot=lambda: {"balance": 2000})

    await orchestrator.start_session(upi_fields, bindings)
    await run_turns(orchestrator, 2)

    amount_field = upi_fields[1]
    assert orchestrator.current_field().name == "amount"
    assert player.last == f"Insufficient balance. {amount_field.prompt}"
    assert orchestrator.is_listening


@pytest.mark.asyncio
async def test_skip_rejected_on_required_field(make_orchestrator, upi_fields, form_bindings, player):
    completion = AsyncMock()
    completion.complete = AsyncMock(return_value='{"action":"skip","message":"ok"}')
    orchestrator = make_orchestrator(["skip it"], completion_service=completion)

    await orchestrator.start_session(upi_fields, form_bindings)
    await run_turns(orchestrator, 1)

    assert orchestrator.current_field().name == "upiId"
    assert orchestrator.history == ()
    assert "required" in player.last


@pytest.mark.asyncio
async def test_skip_records_optional_field(make_orchestrator, simple_fields):
    completion = AsyncMock()
    completion.complete = AsyncMock(
        side_effect=[
            json.dumps({"action": "fill_field", "value": "Asha", "message": "Thanks"}),
            json.dumps({"action": "fill_field", "value": 31, "message": "Thanks"}),
            '{"action":"skip","message":"ok"}',
        ]
    )
    submit = AsyncMock()
    orchestrator = make_orchestrator(["Asha", "thirty one", "skip"], completion_service=completion)

    await orchestrator.start_session(simple_fields, FormBindings(fields={}, submit=submit))
    await run_turns(orchestrator, 3)

    submit.assert_awaited_once_with({"name": "Asha", "age": 31, "note": None})
    assert orchestrator.history == ()


@pytest.mark.asyncio
async def test_go_back_appends_and_latest_value_wins(make_orchestrator, upi_fields, form_bindings):
    orchestrator = make_orchestrator(
        ["arvind at paytm", "go back", "priya at okaxis", "two hundred", "skip"]
    )

    await orchestrator.start_session(upi_fields, form_bindings)
    await run_turns(orchestrator, 4)

    upi_entries = [e.parsed_value for e in orchestrator.history if e.field == "upiId"]
    assert upi_entries == ["arvind@paytm", "priya@okaxis"]

    await run_turns(orchestrator, 1)

    assert orchestrator.history == ()
    form_bindings.submit.assert_awaited_once_with({"upiId": "priya@okaxis", "amount": 200, "note": None})


@pytest.mark.asyncio
async def test_go_back_on_first_field_repeats_prompt(make_orchestrator, upi_fields, form_bindings, player):
    orchestrator = make_orchestrator(["go back"])

    await orchestrator.start_session(upi_fields, form_bindings)
    await run_turns(orchestrator, 1)

    assert orchestrator.current_field().name == "upiId"
    assert player.last.endswith(upi_fields[0].prompt)


@pytest.mark.asyncio
async def test_cancel_ends_session(make_orchestrator, upi_fields, form_bindings, recorder):
    orchestrator = make_orchestrator(["cancel this"])

    await orchestrator.start_session(upi_fields, form_bindings)
    await run_turns(orchestrator, 1)

    assert not orchestrator.is_guided_active
    assert recorder.live_handles == []
    form_bindings.on_cancel.assert_called_once()
    form_bindings.submit.assert_not_awaited()


@pytest.mark.asyncio
async def test_clarification_does_not_advance(make_orchestrator, upi_fields, form_bindings, player):
    orchestrator = make_orchestrator(["what is upi?"])

    await orchestrator.start_session(upi_fields, form_bindings)
    await run_turns(orchestrator, 1)

    assert orchestrator.current_field().name == "upiId"
    assert "instant payment system" in player.last
    assert orchestrator.is_listening


@pytest.mark.asyncio
async def test_transcription_failure_retries_prompt(make_orchestrator, upi_fields, form_bindings, player):
    orchestrator = make_orchestrator(["", "", "arvind at paytm"])

    await orchestrator.start_session(upi_fields, form_bindings)
    await run_turns(orchestrator, 2)

    assert player.last == f"Sorry, I didn't catch that. {upi_fields[0].prompt}"
    assert orchestrator.is_listening

    await run_turns(orchestrator, 1)
    assert orchestrator.current_field().name == "amount"


@pytest.mark.asyncio
async def test_completion_failure_retries_prompt(make_orchestrator, upi_fields, form_bindings, player):
    completion = AsyncMock()
    completion.complete = AsyncMock(side_effect=CompletionError("timeout"))
    orchestrator = make_orchestrator(["arvind at paytm"], completion_service=completion)

    await orchestrator.start_session(upi_fields, form_bindings)
    await run_turns(orchestrator, 1)

    assert orchestrator.is_guided_active
    assert orchestrator.current_field().name == "upiId"
    assert player.last.endswith(upi_fields[0].prompt)


@pytest.mark.asyncio
async def test_unexpected_error_surfaces_error_status(make_orchestrator, upi_fields, form_bindings, recorder):
    completion = AsyncMock()
    completion.complete = AsyncMock(side_effect=RuntimeError("boom"))
    orchestrator = make_orchestrator(["arvind at paytm"], completion_service=completion)

    await orchestrator.start_session(upi_fields, form_bindings)
    await run_turns(orchestrator, 1)

    assert orchestrator.status == VoiceStatus.ERROR
    assert not orchestrator.is_guided_active
    assert recorder.live_handles == []


@pytest.mark.asyncio
async def test_confirmation_yes_submits_from_history(make_orchestrator, upi_fields, form_bindings, player):
    orchestrator = make_orchestrator(["arvind at paytm", "five hundred", "for dinner", "yes please"])

    await orchestrator.start_guided_mode("UPIPayment", form_bindings)
    await run_turns(orchestrator, 3)

    assert orchestrator.mode == DialogueMode.AWAITING_CONFIRMATION
    assert "Shall I proceed" in player.last
    form_bindings.submit.assert_not_awaited()

    await run_turns(orchestrator, 1)

    form_bindings.submit.assert_awaited_once_with({"upiId": "arvind@paytm", "amount": 500, "note": "for dinner"})
    assert not orchestrator.is_guided_active


@pytest.mark.asyncio
async def test_confirmation_unclear_answer_reasks(make_orchestrator, form_bindings, player):
    orchestrator = make_orchestrator(["arvind at paytm", "five hundred", "skip", "hmm"])

    await orchestrator.start_guided_mode("UPIPayment", form_bindings)
    await run_turns(orchestrator, 4)

    assert orchestrator.mode == DialogueMode.AWAITING_CONFIRMATION
    assert player.last == CONFIRM_QUESTION


@pytest.mark.asyncio
async def test_confirmation_no_then_edit_field(make_orchestrator, form_bindings, player):
    orchestrator = make_orchestrator(
        ["arvind at paytm", "five hundred", "skip", "no", "the amount", "seven hundred", "yes"]
    )

    await orchestrator.start_guided_mode("UPIPayment", form_bindings)
    await run_turns(orchestrator, 4)

    assert orchestrator.mode == DialogueMode.SELECTING_FIELD_TO_EDIT
    assert "Which field" in player.last

    await run_turns(orchestrator, 1)
    assert orchestrator.mode == DialogueMode.NORMAL
    assert orchestrator.current_field().name == "amount"

    await run_turns(orchestrator, 1)
    assert orchestrator.mode == DialogueMode.AWAITING_CONFIRMATION

    await run_turns(orchestrator, 1)
    form_bindings.submit.assert_awaited_once_with({"upiId": "arvind@paytm", "amount": 700, "note": None})


@pytest.mark.asyncio
async def test_confirmation_negative_naming_field_jumps_directly(make_orchestrator, form_bindings):
    orchestrator = make_orchestrator(["arvind at paytm", "five hundred", "skip", "change the amount"])

    await orchestrator.start_guided_mode("UPIPayment", form_bindings)
    await run_turns(orchestrator, 4)

    assert orchestrator.mode == DialogueMode.NORMAL
    assert orchestrator.current_field().name == "amount"


@pytest.mark.asyncio
async def test_field_selection_unknown_reasks_and_cancel_stops(make_orchestrator, form_bindings, player):
    orchestrator = make_orchestrator(["arvind at paytm", "five hundred", "skip", "no", "the weather", "never mind"])

    await orchestrator.start_guided_mode("UPIPayment", form_bindings)
    await run_turns(orchestrator, 5)

    assert orchestrator.mode == DialogueMode.SELECTING_FIELD_TO_EDIT
    assert player.last.startswith("Sorry, I didn't get which field.")

    await run_turns(orchestrator, 1)
    assert not orchestrator.is_guided_active
    form_bindings.submit.assert_not_awaited()


@pytest.mark.asyncio
async def test_start_guided_mode_unknown_form(make_orchestrator, form_bindings):
    orchestrator = make_orchestrator()

    assert await orchestrator.start_guided_mode("Profile", form_bindings) is False
    assert not orchestrator.is_guided_active


@pytest.mark.asyncio
async def test_stop_guided_mode_cleans_up(make_orchestrator, upi_fields, form_bindings, recorder, player):
    orchestrator = make_orchestrator()

    await orchestrator.start_session(upi_fields, form_bindings)
    orchestrator.stop_guided_mode()

    assert not orchestrator.is_guided_active
    assert orchestrator.status == VoiceStatus.IDLE
    assert recorder.live_handles == []
    assert orchestrator.current_field() is None


@pytest.mark.asyncio
async def test_scan_document_fills_address(make_orchestrator, form_bindings):
    extractor = Mock()
    extractor.capture_and_extract = AsyncMock(
        return_value=DocumentData(
            addressLine1="Flat 12, Lake View",
            addressLine2="MG Road",
            city="Bengaluru",
            state="Karnataka",
            pincode="560001",
        )
    )
    orchestrator = make_orchestrator(
        ["fifty thousand", "twelve", "scan my document"],
        document_scan_service=DocumentScanService(extractor),
    )
    bindings = FormBindings(fields={}, submit=AsyncMock())

    await orchestrator.start_session(LOAN_APPLICATION_FIELDS, bindings)
    await run_turns(orchestrator, 3)

    address = [e.parsed_value for e in orchestrator.history if e.field == "address"]
    assert address == ["Flat 12, Lake View, MG Road, Bengaluru, Karnataka, 560001"]
    assert orchestrator.current_field().name == "panNumber"


@pytest.mark.asyncio
async def test_scan_document_cancelled_repeats_prompt(make_orchestrator, player):
    extractor = Mock()
    extractor.capture_and_extract = AsyncMock(side_effect=UserCancelledError("closed"))
    orchestrator = make_orchestrator(
        ["fifty thousand", "twelve", "use the camera"],
        document_scan_service=DocumentScanService(extractor),
    )

    await orchestrator.start_session(LOAN_APPLICATION_FIELDS, FormBindings(fields={}, submit=AsyncMock()))
    await run_turns(orchestrator, 3)

    assert orchestrator.current_field().name == "address"
    assert player.last == LOAN_APPLICATION_FIELDS[2].prompt


@pytest.mark.asyncio
async def test_scan_document_failure_falls_back_to_voice(make_orchestrator, player):
    extractor = Mock()
    extractor.capture_and_extract = AsyncMock(side_effect=DocumentCaptureError("camera broke"))
    orchestrator = make_orchestrator(
        ["fifty thousand", "twelve", "scan my document"],
        document_scan_service=DocumentScanService(extractor),
    )

    await orchestrator.start_session(LOAN_APPLICATION_FIELDS, FormBindings(fields={}, submit=AsyncMock()))
    await run_turns(orchestrator, 3)

    assert orchestrator.current_field().name == "address"
    assert player.last.startswith("Sorry, I couldn't read that document.")
    assert orchestrator.is_listening


@pytest.mark.asyncio
async def test_navigation_guide_routes_to_visual_guide(make_orchestrator, player):
    guide = VisualGuideCoordinator()
    guide.register_element(
        RegisteredElement(
            id="pay-button",
            label="Pay",
            description="Make a UPI payment",
            screen_name="Dashboard",
            measure=lambda: ElementBounds(10, 20, 80, 40),
            keywords=("pay",),
        )
    )
    completion = AsyncMock()
    completion.complete = AsyncMock(
        return_value='{"type": "navigation_guide", "elementId": "pay-button", "instruction": "Tap Pay."}'
    )
    orchestrator = make_orchestrator(completion_service=completion, visual_guide=guide)
    orchestrator.screen_context.set_current_screen("Dashboard")

    await orchestrator.handle_transcript("where do I pay someone")

    assert guide.is_guiding
    assert guide.active_element_id == "pay-button"
    assert player.last == "Tap Pay."
    assert orchestrator.status == VoiceStatus.IDLE


@pytest.mark.asyncio
async def test_free_turn_speaks_model_reply(make_orchestrator, recorder, player):
    orchestrator = make_orchestrator(["what's my balance"])
    orchestrator.screen_context.set_current_screen("Profile")

    await orchestrator.start_listening()
    assert orchestrator.status == VoiceStatus.LISTENING

    await orchestrator.finish_listening()

    assert "Profile" in player.last
    assert orchestrator.status == VoiceStatus.IDLE
    assert not orchestrator.is_listening


@pytest.mark.asyncio
async def test_start_session_rejects_empty_fields(make_orchestrator, form_bindings):
    orchestrator = make_orchestrator()

    with pytest.raises(SessionError):
        await orchestrator.start_session((), form_bindings)


@pytest.mark.asyncio
async def test_stop_while_microphone_opens_discards_recording(make_orchestrator, upi_fields, form_bindings, recorder):
    recorder.permission_requested = asyncio.Event()
    recorder.permission_gate = asyncio.Event()
    orchestrator = make_orchestrator()

    session = asyncio.create_task(orchestrator.start_session(upi_fields, form_bindings))
    await recorder.permission_requested.wait()
    orchestrator.stop_guided_mode()
    recorder.permission_gate.set()
    await session

    assert not orchestrator.is_guided_active
    assert not orchestrator.is_listening
    assert orchestrator.status == VoiceStatus.IDLE
    assert recorder.live_handles == []


@pytest.mark.asyncio
async def test_pan_is_normalized_before_binding_and_submit(make_orchestrator):
    completion = AsyncMock()
    completion.complete = AsyncMock(
        side_effect=[
            json.dumps({"action": "fill_field", "value": 50000, "message": "Noted"}),
            json.dumps({"action": "fill_field", "value": 12, "message": "Noted"}),
            json.dumps({"action": "fill_field", "value": "Flat 12, Lake View, MG Road, Bengaluru", "message": "Noted"}),
            json.dumps({"action": "fill_field", "value": "abcde 1234 f", "message": "Noted"}),
        ]
    )
    set_pan = Mock()
    submit = AsyncMock()
    orchestrator = make_orchestrator(
        ["fifty thousand", "twelve", "my address", "a b c d e 1 2 3 4 f"], completion_service=completion
    )

    await orchestrator.start_session(
        LOAN_APPLICATION_FIELDS, FormBindings(fields={"panNumber": FieldBinding(set_value=set_pan)}, submit=submit)
    )
    await run_turns(orchestrator, 4)

    set_pan.assert_called_once_with("ABCDE1234F")
    assert submit.await_args.args[0]["panNumber"] == "ABCDE1234F"


@pytest.mark.asyncio
async def test_navigation_guide_during_guided_session_keeps_field(
    make_orchestrator, upi_fields, form_bindings, player
):
    guide = VisualGuideCoordinator()
    guide.register_element(
        RegisteredElement(
            id="upi-id-input",
            label="UPI ID",
            description="Enter the payee UPI ID",
            screen_name="UPIPayment",
            measure=lambda: ElementBounds(0, 100, 300, 48),
        )
    )
    completion = AsyncMock()
    completion.complete = AsyncMock(
        return_value='{"type": "navigation_guide", "elementId": "upi-id-input", "instruction": "Type it here."}'
    )
    orchestrator = make_orchestrator(["where do I type the id"], completion_service=completion, visual_guide=guide)

    await orchestrator.start_session(upi_fields, form_bindings)
    await run_turns(orchestrator, 1)

    assert guide.active_element_id == "upi-id-input"
    assert player.last == "Type it here."
    assert orchestrator.is_guided_active
    assert orchestrator.current_field().name == "upiId"
    assert orchestrator.history == ()
    assert orchestrator.is_listening
    form_bindings.fields["upiId"].set_value.assert_not_called()


@pytest.mark.asyncio
async def test_scanned_value_failing_validation_reprompts(make_orchestrator, player):
    extractor = Mock()
    extractor.capture_and_extract = AsyncMock(return_value=DocumentData(addressLine1="12 MG Rd"))
    orchestrator = make_orchestrator(
        ["fifty thousand", "twelve", "scan my document"],
        document_scan_service=DocumentScanService(extractor),
    )
    submit = AsyncMock()

    await orchestrator.start_session(LOAN_APPLICATION_FIELDS, FormBindings(fields={}, submit=submit))
    await run_turns(orchestrator, 3)

    address_field = LOAN_APPLICATION_FIELDS[2]
    assert orchestrator.current_field().name == "address"
    assert player.last == f"Please provide complete address. {address_field.prompt}"
    assert [e.field for e in orchestrator.history] == ["loanAmount", "emiTenure"]
    assert orchestrator.is_listening
    submit.assert_not_awaited()


@pytest.mark.asyncio
async def test_settle_delay_runs_between_speech_and_capture(make_orchestrator, upi_fields, form_bindings, recorder, player):
    observed = []

    async def settle(delay):
        observed.append((delay, len(player.spoken), len(recorder.handles)))

    orchestrator = make_orchestrator(settle_delay=0.25)

    with patch("soprano.agent.orchestrator.asyncio.sleep", new=settle):
        await orchestrator.start_session(upi_fields, form_bindings)

    assert observed == [(0.25, 1, 0)]
    assert len(recorder.handles) == 1


@pytest.mark.asyncio
async def test_go_back_with_empty_message_speaks_prompt_only(make_orchestrator, upi_fields, form_bindings, player):
    orchestrator = make_orchestrator(["arvind at paytm"])

    await orchestrator.start_session(upi_fields, form_bindings)
    await run_turns(orchestrator, 1)

    with patch(
        "soprano.agent.orchestrator.interpret_response",
        return_value=RecognizedIntent(kind=IntentKind.GO_BACK, message=""),
    ):
        await orchestrator.handle_transcript("take me back")

    assert orchestrator.current_field().name == "upiId"
    assert player.last == upi_fields[0].prompt
