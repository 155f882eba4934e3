"""
Engine Scenario Test Suite

End-to-end behaviour of PromptSyncEngine against a scripted resolution
service: layered resolution, race safety, in-flight sharing, disable hygiene,
language flips, failures, hints, history and selection toggling.
"""

import asyncio
import sys
from pathlib import Path

# Add the parent directory to path to import promptsync
sys.path.insert(0, str(Path(__file__).parent.parent))

from promptsync import PromptSyncEngine
from promptsync.exceptions import PreTranslationError, ResolutionServiceError
from promptsync.prompt_data import CATEGORY_CHARACTER, CATEGORY_LORA, CATEGORY_QUALITY, CATEGORY_SCENE, CATEGORY_STYLE
from promptsync.types import SyntaxType


async def settle(rounds=5):
    for _ in range(rounds):
        await asyncio.sleep(0)


def test_dictionary_known_segments_need_no_service_call(config, service, lora_dictionary):
    engine = PromptSyncEngine(config, service=service, dictionary=lora_dictionary)

    async def main():
        return await engine.submit_text("1girl, (masterpiece:1.2), <lora:x:0.8>")

    outcome = asyncio.run(main())

    assert outcome.success
    assert outcome.service_calls == 0
    assert service.calls == []
    tags = engine.tags
    assert [tag.syntax_type for tag in tags] == [SyntaxType.NORMAL, SyntaxType.WEIGHTED, SyntaxType.LORA]
    assert [tag.category for tag in tags] == [CATEGORY_CHARACTER, CATEGORY_QUALITY, CATEGORY_LORA]
    assert [tag.english_text for tag in tags] == ["1girl", "(masterpiece:1.2)", "<lora:x:0.8>"]
    assert not any(tag.pending for tag in tags)
    assert engine.active_prompt() == "1girl, (masterpiece:1.2), <lora:x:0.8>"


def test_unknown_segments_are_resolved_cached_and_learned(engine, service):
    service.answers["cyber city"] = ("cyber city", "赛博城市", CATEGORY_SCENE)
    states = []
    engine.set_listener(states.append)

    async def main():
        first = await engine.submit_text("sky, cyber city, cyber city")
        second = await engine.submit_text("cyber city, sky")
        return first, second

    first, second = asyncio.run(main())

    assert service.requested == [["cyber city"]]  # deduplicated, sky from the dictionary
    assert first.service_calls == 1
    assert second.service_calls == 0
    assert [tag.translation for tag in engine.tags] == ["赛博城市", "天空"]
    # first publication is the mixed list with placeholders
    assert [tag.pending for tag in states[0].tags] == [False, True, True]
    assert states[0].tags[1].translation == "..."
    assert engine.search("cyber city")[0].key == "cyber city"
    assert engine.get_cache_info().learned_count == 1


def test_stale_pass_never_publishes(engine, service):
    async def main():
        service.gate = asyncio.Event()
        old = engine.submit_text("neon")
        await settle()
        new = engine.submit_text("rain")
        await settle()
        service.gate.set()
        return await old, await new

    old, new = asyncio.run(main())

    assert old.stale
    assert not old.success
    assert new.success
    assert [tag.raw for tag in engine.tags] == ["rain"]
    assert not engine.tags[0].pending
    # the stale result still warms the cache
    assert engine.get_cache_info().cache_size >= 2
    assert engine.last_outcome == new


def test_pass_superseded_before_it_runs_is_stale(engine):
    async def main():
        first = engine.submit_text("sky")
        second = engine.submit_text("night")
        return await first, await second

    first, second = asyncio.run(main())

    assert first.stale
    assert first.tags == ()
    assert second.success
    assert [tag.raw for tag in second.tags] == ["night"]
    assert engine.last_outcome == second


def test_in_flight_segments_are_joined(engine, service):
    async def main():
        service.gate = asyncio.Event()
        first = engine.submit_text("neon")
        await settle()
        second = engine.submit_text("neon, sky")
        await settle()
        service.gate.set()
        return await first, await second

    first, second = asyncio.run(main())

    assert service.requested == [["neon"]]
    assert first.stale
    assert second.service_calls == 0
    assert [tag.translation for tag in engine.tags] == ["译:neon", "天空"]


def test_disable_remove_retype_is_enabled(engine):
    async def main():
        await engine.submit_text("(masterpiece:1.2), sky")
        target = engine.tags[0]
        assert engine.toggle(target.transient_id)
        assert engine.tags[0].disabled
        assert engine.remove(engine.tags[0].transient_id)
        assert engine.text == "sky"
        await engine.submit_text("sky, (masterpiece:1.2)")

    asyncio.run(main())

    assert engine.tags[1].raw == "(masterpiece:1.2)"
    assert not engine.tags[1].disabled


def test_disable_then_delete_by_typing_is_enabled(engine):
    async def main():
        await engine.submit_text("(masterpiece:1.2), sky")
        engine.toggle(engine.tags[0].transient_id)
        await engine.submit_text("sky")
        await engine.submit_text("sky, (masterpiece:1.2)")

    asyncio.run(main())

    assert not engine.tags[1].disabled


def test_disabled_flag_survives_other_edits(engine):
    async def main():
        await engine.submit_text("1girl, sky")
        engine.toggle(engine.tags[1].transient_id)
        await engine.submit_text("1girl, sky, night")

    asyncio.run(main())

    assert [tag.disabled for tag in engine.tags] == [False, True, False]
    assert engine.active_prompt() == "1girl, night"


def test_language_flip_is_a_pure_cache_hit(engine, service):
    states = []
    engine.set_listener(states.append)

    async def main():
        await engine.submit_text("1girl, sky, (masterpiece:1.2)")
        flipped = engine.flip_language()
        echo_before = len(states)
        engine.edit_text(engine.text)  # host echoing the regenerated text
        assert len(states) == echo_before
        outcome = await engine.submit_text(engine.text)
        return flipped, outcome

    flipped, outcome = asyncio.run(main())

    assert flipped == 3
    assert engine.text == "1个女孩, 天空, 杰作"
    assert outcome.service_calls == 0
    assert service.calls == []
    assert [tag.english_text for tag in engine.tags] == ["1girl", "sky", "(masterpiece:1.2)"]
    assert [tag.category for tag in engine.tags] == [CATEGORY_CHARACTER, CATEGORY_SCENE, CATEGORY_QUALITY]
    assert engine.active_prompt() == "1girl, sky, (masterpiece:1.2)"


def test_service_failure_resolves_to_unknown(engine, service):
    service.error = ResolutionServiceError("quota exceeded")

    async def main():
        return await engine.submit_text("neon, sky")

    outcome = asyncio.run(main())

    assert not outcome.success
    assert "quota exceeded" in outcome.error_message
    assert engine.state.error_message == outcome.error_message
    neon = engine.tags[0]
    assert not neon.pending
    assert neon.category == "Unknown"
    assert engine.tags[1].category == CATEGORY_SCENE

    # failures are not cached, the next pass asks again
    service.error = None

    async def retry():
        return await engine.submit_text("neon, sky, night")

    retried = asyncio.run(retry())
    assert retried.success
    assert engine.state.error_message is None
    assert engine.tags[0].translation == "译:neon"
    assert len(service.calls) == 2


def test_malformed_response_resolves_to_unknown(engine, service):
    service.payload = "definitely not json tags"

    async def main():
        return await engine.submit_text("neon")

    outcome = asyncio.run(main())

    assert "malformed response" in outcome.error_message
    assert engine.tags[0].category == "Unknown"
    assert not engine.tags[0].pending


def test_short_response_is_padded(engine, service):
    service.payload = {"tags": [{"en": "neon", "cn": "霓虹", "cat": CATEGORY_STYLE}]}

    async def main():
        return await engine.submit_text("neon, rain")

    outcome = asyncio.run(main())

    assert outcome.success
    assert [tag.category for tag in engine.tags] == [CATEGORY_STYLE, "Unknown"]
    assert engine.get_cache_info().learned_count == 1  # the padded fallback is not learned


def test_no_service_configured(config):
    engine = PromptSyncEngine(config)

    async def main():
        return await engine.submit_text("neon, sky")

    outcome = asyncio.run(main())

    assert outcome.error_message == "no resolution service configured"
    assert [tag.category for tag in engine.tags] == ["Unknown", CATEGORY_SCENE]


def test_service_hints_fill_the_matching_side(engine, service):
    service.hints = {"neon": "霓虹", "天空之城": "castle in the sky"}

    async def main():
        service.gate = asyncio.Event()
        task = engine.submit_text("neon, 天空之城")
        await settle()
        hinted = engine.tags
        service.gate.set()
        await task
        return hinted

    hinted = asyncio.run(main())

    assert hinted[0].pending
    assert (hinted[0].english_text, hinted[0].translation) == ("neon", "霓虹")
    assert (hinted[1].english_text, hinted[1].translation) == ("castle in the sky", "天空之城")
    assert not any(tag.pending for tag in engine.tags)


def test_pre_translation_switches_to_hybrid_request(config, service, pre_translator):
    pre_translator.translations = {"neon": "霓虹"}
    engine = PromptSyncEngine(config, service=service, pre_translator=pre_translator)

    async def main():
        await engine.submit_text("neon, rain")

    asyncio.run(main())

    assert pre_translator.calls == [(["neon", "rain"], "zh")]
    request = service.calls[0]
    assert dict(request.hints) == {"neon": "霓虹"}  # unchanged texts are not hints


def test_pre_translation_failure_and_mismatch_are_skipped(config, service, pre_translator, caplog):
    engine = PromptSyncEngine(config, service=service, pre_translator=pre_translator)
    pre_translator.error = PreTranslationError("Baidu API error 54003")

    async def main(text):
        return await engine.submit_text(text)

    outcome = asyncio.run(main("neon"))
    assert outcome.success
    assert service.calls[-1].hints is None
    assert "pre-translation failed" in caplog.text

    pre_translator.error = None
    pre_translator.translations = {"rain": "雨", "fog": "雾"}
    pre_translator.drop_last = True
    outcome = asyncio.run(main("neon, rain, fog"))
    assert outcome.success
    assert service.calls[-1].hints is None
    assert "ignoring it" in caplog.text


def test_debounced_typing_resolves_only_settled_text(engine, service):
    async def main():
        engine.edit_text("n")
        engine.edit_text("ne")
        engine.edit_text("neon")
        assert engine.tags == ()  # nothing published before the settle delay
        await engine.wait_idle()

    asyncio.run(main())

    assert service.requested == [["neon"]]
    assert [tag.raw for tag in engine.tags] == ["neon"]


def test_intent_flushes_pending_debounce(engine, service):
    async def main():
        await engine.submit_text("1girl, sky")
        stale_handle = engine.tags[1].transient_id
        engine.edit_text("1girl, sky, night")
        # the handle is carried across the flushed re-materialization
        assert engine.toggle(stale_handle)
        await engine.wait_idle()

    asyncio.run(main())

    assert [tag.raw for tag in engine.tags] == ["1girl", "sky", "night"]
    assert [tag.disabled for tag in engine.tags] == [False, True, False]
    assert service.calls == []


def test_reorder_while_pending_joins_in_flight_work(engine, service):
    async def main():
        service.gate = asyncio.Event()
        engine.submit_text("neon, sky")
        await settle()
        assert engine.reorder(0, 1)
        assert engine.text == "sky, neon"
        assert engine.tags[1].pending
        service.gate.set()
        await engine.wait_idle()

    asyncio.run(main())

    assert len(service.calls) == 1
    assert [tag.raw for tag in engine.tags] == ["sky", "neon"]
    assert not any(tag.pending for tag in engine.tags)


def test_toggle_while_pending_is_kept(engine, service):
    async def main():
        service.gate = asyncio.Event()
        engine.submit_text("neon")
        await settle()
        engine.toggle(engine.tags[0].transient_id)
        service.gate.set()
        await engine.wait_idle()
        await engine.submit_text("neon, sky")

    asyncio.run(main())

    assert engine.tags[0].disabled
    assert engine.tags[0].translation == "译:neon"


def test_toggle_selection(engine):
    async def main():
        await engine.submit_text("1girl, sky, night")
        assert engine.toggle_selection(8, 8) == 1  # caret inside "sky"
        assert [tag.disabled for tag in engine.tags] == [False, True, False]
        assert engine.toggle_selection(8, 0) == 2  # selection over "1girl" and "sky"
        assert [tag.disabled for tag in engine.tags] == [True, False, False]
        assert engine.toggle_selection(100, 100) == 0

    asyncio.run(main())


def test_refresh_tag_keeps_disabled_flag(engine, service):
    async def main():
        await engine.submit_text("neon, sky")
        neon = engine.tags[0]
        engine.toggle(neon.transient_id)
        service.answers["neon"] = ("neon", "霓虹灯", CATEGORY_STYLE)
        return await engine.refresh_tag(neon.transient_id)

    refreshed = asyncio.run(main())

    assert refreshed is not None
    assert refreshed.translation == "霓虹灯"
    assert refreshed.category == CATEGORY_STYLE
    assert refreshed.disabled
    assert not refreshed.pending
    assert len(service.calls) == 2
    assert engine.search("neon")[0].entry.translation == "霓虹灯"


def test_refresh_failure_restores_previous_entry(engine, service):
    async def main():
        await engine.submit_text("neon")
        service.error = ResolutionServiceError("timeout")
        result = await engine.refresh_tag(engine.tags[0].transient_id)
        await engine.submit_text("neon, sky")
        return result

    result = asyncio.run(main())

    assert result is None
    assert engine.tags[0].translation == "译:neon"
    assert not engine.tags[0].pending
    assert len(service.calls) == 2


def test_pass_during_refresh_joins_the_refresh_request(engine, service):
    async def main():
        await engine.submit_text("neon")
        service.answers["neon"] = ("neon", "霓虹灯", CATEGORY_STYLE)
        service.gate = asyncio.Event()
        refresh = engine.refresh_tag(engine.tags[0].transient_id)
        await settle()
        retyped = engine.submit_text("neon, sky")
        await settle()
        service.gate.set()
        await refresh
        return await retyped

    outcome = asyncio.run(main())

    assert service.requested == [["neon"], ["neon"]]
    assert outcome.success
    assert outcome.service_calls == 0
    assert [tag.translation for tag in engine.tags] == ["霓虹灯", "天空"]


def test_undo_redo(engine):
    async def main():
        await engine.submit_text("sky")
        await engine.submit_text("sky, night")
        assert engine.undo() == "sky"
        await engine.wait_idle()
        assert [tag.raw for tag in engine.tags] == ["sky"]
        assert engine.redo() == "sky, night"
        await engine.wait_idle()
        engine.remove(engine.tags[0].transient_id)
        assert engine.undo() == "sky, night"
        await engine.wait_idle()

    asyncio.run(main())

    assert engine.text == "sky, night"
    assert [tag.raw for tag in engine.tags] == ["sky", "night"]


def test_clear(engine):
    states = []
    engine.set_listener(states.append)

    async def main():
        await engine.submit_text("sky, night")
        engine.toggle(engine.tags[0].transient_id)
        engine.clear()
        assert engine.text == ""
        assert engine.undo() is None
        await engine.submit_text("sky")

    asyncio.run(main())

    assert states[-1].text == "sky"
    assert not engine.tags[0].disabled
