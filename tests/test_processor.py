"""
Tests for the story processor: full runs over single files and part archives,
the permission gate, failure policy and manual task retries.
"""

import asyncio

import pytest

from contextfox.core.errors import (
    InvalidTaskTransitionError,
    RefusalError,
    ResumeNotAllowedError,
    TaskNotFoundError,
    TransportError,
)
from contextfox.core.processor import COMPLETE_MESSAGE, StoryProcessor
from contextfox.models import ProcessingState, ProcessorStatus, StoryCard, StoryContent, TaskStatus
from contextfox.prompts import DEFAULT_REFUSAL_PROMPT, HARD_RULES

from conftest import FakeCompletionClient, make_settings


class GatedClient(FakeCompletionClient):
    """Scripted client that holds calls to one model until released."""

    def __init__(self, gated_model=None, responses=None):
        super().__init__(responses)
        self.gated_model = gated_model
        self.entered = asyncio.Event()
        self.release = asyncio.Event()

    async def complete(self, model, system_prompt, user_content, sampling=None):
        if model == self.gated_model and not self.release.is_set():
            self.entered.set()
            await self.release.wait()
        return await super().complete(model, system_prompt, user_content, sampling)


def _processor(client, store, settings=None, events=None):
    callback = None
    if events is not None:
        callback = lambda event_type, data: events.append((event_type, data))
    return StoryProcessor("story-1", client, store, settings=settings or make_settings(), event_callback=callback)


class TestSingleFileRun:
    """Tests for processing a single story text."""

    @pytest.mark.asyncio
    async def test_full_run(self, fake_client, store):
        processor = _processor(fake_client, store)
        outcome = await processor.process(StoryContent(text="A\nB\nC"))

        assert outcome.status == ProcessorStatus.DONE
        assert outcome.message == COMPLETE_MESSAGE
        assert outcome.parts_processed == [1]

        state = await store.get_state("story-1")
        assert state.character == "Alice"
        assert state.story_title == "The Fox"
        assert [card.title for card in state.accumulated_cards] == ["Alice", "Wonderland"]
        assert state.accumulated_summary == "Alice follows a rabbit."
        assert state.plot_essentials == "Alice is late."
        assert state.last_line == "C"
        assert state.current_part == 1
        assert state.updated_at is not None

    @pytest.mark.asyncio
    async def test_no_new_content(self, fake_client, store):
        processor = _processor(fake_client, store)
        await processor.process(StoryContent(text="A\nB\nC"))
        calls_after_first = len(fake_client.calls)

        outcome = await processor.process()

        assert outcome.status == ProcessorStatus.DONE
        assert outcome.message == "No new content to process"
        assert len(fake_client.calls) == calls_after_first

    @pytest.mark.asyncio
    async def test_appended_text_processed_without_identity(self, fake_client, store):
        processor = _processor(fake_client, store)
        await processor.process(StoryContent(text="A\nB\nC"))
        fake_client.responses["test/characters"] = '{"cards": [{"title": "Alice", "value": "Now older"}]}'

        outcome = await processor.process(StoryContent(text="A\nB\nC\nD\nE"))

        assert outcome.status == ProcessorStatus.DONE
        assert len(fake_client.calls_for("test/perspective")) == 1
        assert fake_client.calls_for("test/characters")[-1]["user_content"] == "D\nE"
        alice = outcome.state.accumulated_cards[0]
        assert alice.value == "Now older"
        assert alice.keys == "Alice, girl"
        assert outcome.state.last_line == "E"

    @pytest.mark.asyncio
    async def test_story_model_substituted(self, fake_client, store):
        processor = _processor(fake_client, store, make_settings(story_model="Nova"))
        await processor.process(StoryContent(text="A"))
        prompt = fake_client.calls_for("test/characters")[0]["system_prompt"]
        assert "Llama-3.3-70B-Instruct" in prompt
        assert "$model" not in prompt

    @pytest.mark.asyncio
    async def test_no_content_loaded(self, fake_client, store):
        outcome = await _processor(fake_client, store).process()
        assert outcome.status == ProcessorStatus.FAILED
        assert outcome.message == "Error: No story content loaded"
        assert fake_client.calls == []


class TestPartitionedRun:
    """Tests for multi-part processing and the permission gate."""

    @pytest.mark.asyncio
    async def test_parts_processed_in_sequence(self, fake_client, store):
        processor = _processor(fake_client, store)
        outcome = await processor.process(StoryContent(parts={1: "X\nY", 2: "Z"}))

        assert outcome.status == ProcessorStatus.DONE
        assert outcome.parts_processed == [1, 2]
        assert outcome.state.current_part == 2
        assert outcome.state.last_line == "Z"
        contents = [call["user_content"] for call in fake_client.calls_for("test/characters")]
        assert contents == ["X\nY", "Z"]
        assert processor.board.get("characters (2/2)").status == TaskStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_permission_gate(self, fake_client, store):
        settings = make_settings(require_permission_between_parts=True)
        processor = _processor(fake_client, store, settings)
        parts = {1: "part one", 2: "part two", 3: "part three"}

        outcome = await processor.process(StoryContent(parts=parts))

        assert outcome.status == ProcessorStatus.AWAITING_PERMISSION
        assert outcome.message == "Part 1/3 complete. Waiting for permission to continue."
        assert processor.awaiting_permission
        calls_before_resume = len(fake_client.calls)
        assert all("part two" not in call["user_content"] for call in fake_client.calls)

        outcome = await processor.resume()
        assert outcome.status == ProcessorStatus.AWAITING_PERMISSION
        assert outcome.parts_processed == [2]
        assert len(fake_client.calls) > calls_before_resume
        assert fake_client.calls_for("test/characters")[-1]["user_content"] == "part two"

        outcome = await processor.resume()
        assert outcome.status == ProcessorStatus.DONE
        assert outcome.parts_processed == [3]
        assert (await store.get_state("story-1")).current_part == 3

    @pytest.mark.asyncio
    async def test_resume_not_allowed(self, fake_client, store):
        processor = _processor(fake_client, store)
        with pytest.raises(ResumeNotAllowedError):
            await processor.resume()

    @pytest.mark.asyncio
    async def test_split_before_processing(self, fake_client, store):
        processor = _processor(fake_client, store)
        outcome = await processor.process(
            StoryContent(text="1\n2\n3\n4"),
            context_lengths={"test/characters": 32000},
        )
        assert outcome.parts_processed == [1, 2]
        stored = await store.get_content("story-1")
        assert stored.parts == {1: "1\n2", 2: "3\n4"}


class TestFailurePolicy:
    """Tests for which failures abort a run."""

    @pytest.mark.asyncio
    async def test_summary_failure_aborts(self, store):
        client = FakeCompletionClient({"test/summary": TransportError("upstream down")})
        processor = _processor(client, store)

        outcome = await processor.process(StoryContent(text="A"))

        assert outcome.status == ProcessorStatus.FAILED
        assert outcome.message == "Error: Generating Summary failed: upstream down"
        assert await store.get_state("story-1") is None
        assert processor.board.get("summary").output == "upstream down"

    @pytest.mark.asyncio
    async def test_blank_summary_keeps_previous(self, store):
        await store.save_state("story-1", ProcessingState(
            character="Alice", story_title="The Fox", accumulated_summary="Earlier events.",
        ))
        client = FakeCompletionClient({"test/summary": '{"summary": ""}'})
        outcome = await _processor(client, store).process(StoryContent(text="A"))
        assert outcome.status == ProcessorStatus.DONE
        assert outcome.state.accumulated_summary == "Earlier events."

    @pytest.mark.asyncio
    async def test_card_failure_tolerated(self, store):
        client = FakeCompletionClient({"test/locations": TransportError("down")})
        outcome = await _processor(client, store).process(StoryContent(text="A"))
        assert outcome.status == ProcessorStatus.DONE
        assert [card.title for card in outcome.state.accumulated_cards] == ["Alice"]

    @pytest.mark.asyncio
    async def test_plot_failure_keeps_previous(self, store):
        await store.save_state("story-1", ProcessingState(
            character="Alice", story_title="The Fox", plot_essentials="Old threads",
        ))
        client = FakeCompletionClient({"test/plot_essentials": TransportError("down")})
        outcome = await _processor(client, store).process(StoryContent(text="A"))
        assert outcome.status == ProcessorStatus.DONE
        assert outcome.state.plot_essentials == "Old threads"

    @pytest.mark.asyncio
    async def test_content_filter_retried_with_bypass(self, store):
        client = FakeCompletionClient({
            "test/characters": [RefusalError("Content filtered"), '{"cards": []}'],
        })
        outcome = await _processor(client, store).process(StoryContent(text="A"))

        assert outcome.status == ProcessorStatus.DONE
        first, second = [call["system_prompt"] for call in client.calls_for("test/characters")]
        assert second.endswith(DEFAULT_REFUSAL_PROMPT + HARD_RULES["cards"])
        assert second.replace("\n\n" + DEFAULT_REFUSAL_PROMPT, "", 1) == first


class TestCardsAndCoreSelf:
    """Tests for exclusions, imported cards and brain cards."""

    @pytest.mark.asyncio
    async def test_imported_brain_card_hidden_and_updated(self, store):
        client = FakeCompletionClient({
            "test/core_self": '{"coreSelfUpdates": [{"title": "Alice Brain", "core_self": "I am curious."}]}',
        })
        initial = [StoryCard(title="Alice Brain", value="brain data", description="Notes")]

        outcome = await _processor(client, store).process(StoryContent(text="A"), initial_cards=initial)

        character_prompt = client.calls_for("test/characters")[0]["system_prompt"]
        assert "Alice Brain" not in character_prompt
        brain = next(card for card in outcome.state.accumulated_cards if card.title == "Alice Brain")
        assert brain.value == "brain data"
        assert brain.description == "core_self: I am curious.\n\nNotes"

    @pytest.mark.asyncio
    async def test_initial_cards_ignored_when_state_has_cards(self, fake_client, store):
        await store.save_state("story-1", ProcessingState(accumulated_cards=[StoryCard(title="Bob", value="b")]))
        outcome = await _processor(fake_client, store).process(
            StoryContent(text="A"), initial_cards=[StoryCard(title="Carol", value="c")],
        )
        titles = [card.title for card in outcome.state.accumulated_cards]
        assert "Bob" in titles
        assert "Carol" not in titles

    @pytest.mark.asyncio
    async def test_no_brain_cards_skips_core_self(self, fake_client, store):
        await _processor(fake_client, store).process(StoryContent(text="A"))
        assert fake_client.calls_for("test/core_self") == []

    @pytest.mark.asyncio
    async def test_toggle_card(self, fake_client, store):
        processor = _processor(fake_client, store)
        await processor.process(StoryContent(text="A"))

        exclusions = await processor.toggle_card("Wonderland")
        assert exclusions.excluded_card_titles == ["Wonderland"]
        assert (await store.get_state("story-1")).exclusions.excluded_card_titles == ["Wonderland"]

        with pytest.raises(KeyError):
            await processor.toggle_card("Nobody")

    @pytest.mark.asyncio
    async def test_toggle_during_run_survives_part_save(self, store):
        client = GatedClient("test/plot_essentials")
        processor = _processor(client, store)
        run = asyncio.create_task(processor.process(
            StoryContent(text="A"), initial_cards=[StoryCard(title="Bob", value="A builder")],
        ))
        await client.entered.wait()

        exclusions = await processor.toggle_card("Bob")
        client.release.set()
        outcome = await run

        assert exclusions.excluded_card_titles == ["Bob"]
        assert outcome.state.exclusions.excluded_card_titles == ["Bob"]
        assert (await store.get_state("story-1")).exclusions.excluded_card_titles == ["Bob"]

    @pytest.mark.asyncio
    async def test_excluded_card_not_overwritten(self, fake_client, store):
        processor = _processor(fake_client, store)
        await processor.process(StoryContent(text="A"))
        await processor.toggle_card("Wonderland")
        fake_client.responses["test/locations"] = '{"cards": [{"title": "Wonderland", "value": "Rewritten"}]}'

        outcome = await processor.process(StoryContent(text="A\nB"))

        wonderland = next(card for card in outcome.state.accumulated_cards if card.title == "Wonderland")
        assert wonderland.value == "A strange land"
        assert '"title": "Wonderland"' not in fake_client.calls_for("test/locations")[-1]["system_prompt"]


class TestManualRetry:
    """Tests for retrying a finished task."""

    @pytest.mark.asyncio
    async def test_retry_applies_late_result(self, fake_client, store):
        processor = _processor(fake_client, store)
        await processor.process(StoryContent(text="A"))
        fake_client.responses["test/summary"] = '{"summary": "Corrected summary."}'

        task = await processor.retry_task("summary", system_prompt="Edited prompt")

        assert task.retried
        assert task.status == TaskStatus.COMPLETED
        assert fake_client.calls[-1]["system_prompt"] == "Edited prompt"
        assert (await store.get_state("story-1")).accumulated_summary == "Corrected summary."

    @pytest.mark.asyncio
    async def test_retry_failure_recorded(self, fake_client, store):
        processor = _processor(fake_client, store)
        await processor.process(StoryContent(text="A"))
        fake_client.responses["test/plot_essentials"] = TransportError("still down")

        task = await processor.retry_task("plot_essentials")

        assert task.status == TaskStatus.ERROR
        assert task.output == "still down"
        assert (await store.get_state("story-1")).plot_essentials == "Alice is late."

    @pytest.mark.asyncio
    async def test_retry_dropped_when_new_run_starts(self, store):
        client = GatedClient()
        processor = _processor(client, store)
        await processor.process(StoryContent(text="A"))
        client.gated_model = "test/summary"
        client.responses["test/summary"] = '{"summary": "Too late."}'

        retry = asyncio.create_task(processor.retry_task("summary"))
        await client.entered.wait()
        outcome = await processor.process()
        client.release.set()
        await retry

        assert outcome.status == ProcessorStatus.DONE
        assert (await store.get_state("story-1")).accumulated_summary == "Alice follows a rabbit."
        with pytest.raises(TaskNotFoundError):
            processor.board.get("summary")

    @pytest.mark.asyncio
    async def test_skipped_task_cannot_be_retried(self, fake_client, store):
        processor = _processor(fake_client, store, make_settings(models={"title": "None"}))
        await processor.process(StoryContent(text="A"))
        with pytest.raises(InvalidTaskTransitionError):
            await processor.retry_task("title")


class TestEvents:
    """Tests for the event callback."""

    @pytest.mark.asyncio
    async def test_events_emitted(self, fake_client, store):
        events = []
        await _processor(fake_client, store, events=events).process(StoryContent(text="A"))

        types = [event_type for event_type, _ in events]
        assert "task_update" in types
        assert "part_complete" in types
        assert types[-1] == "run_complete"
        assert all(data["story_id"] == "story-1" for _, data in events)
        statuses = [data["status"] for event_type, data in events if event_type == "status"]
        assert statuses[-1] == ProcessorStatus.DONE.value
