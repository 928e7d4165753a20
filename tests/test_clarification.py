from supportbot.clarification import ClarificationFlow, ClarificationStatus


def test_idle_by_default():
    flow = ClarificationFlow()

    assert flow.status is ClarificationStatus.IDLE
    assert flow.options == ()
    assert flow.selected == {}
    assert flow.build_context("anything") is None


def test_select_is_ignored_when_idle():
    flow = ClarificationFlow()

    assert flow.select("OS", "Windows 11") is False
    assert flow.selected == {}


def test_select_ignores_options_that_were_not_offered():
    flow = ClarificationFlow()
    flow.start(["OS", "Segment"])

    assert flow.select("Browser", "Firefox") is False
    assert flow.selected == {}


def test_select_is_last_write_wins_per_key():
    flow = ClarificationFlow()
    flow.start(["OS", "Segment"])

    flow.select("OS", "Windows 10")
    flow.select("OS", "Windows 11")

    assert flow.selected == {"OS": "Windows 11"}
    assert not flow.ready
    assert flow.remaining_options == ("Segment",)


def test_ready_after_two_distinct_selections():
    flow = ClarificationFlow()
    flow.start(["OS", "Segment", "VPN client version"])
    flow.select("OS", "Windows 11")
    flow.select("Segment", "Office")

    assert flow.ready
    context = flow.build_context("VPN is down")
    assert context.original_query == "VPN is down"
    assert context.selected_options == {"OS": "Windows 11", "Segment": "Office"}
    assert context.remaining_questions == 0


def test_context_counts_remaining_questions():
    flow = ClarificationFlow()
    flow.start(["OS", "Segment"])
    flow.select("OS", "Linux")

    assert flow.build_context("q").remaining_questions == 1


def test_start_dedupes_options_and_resets_selection():
    flow = ClarificationFlow()
    flow.start(["OS", "OS", "Segment"])
    flow.select("OS", "Linux")
    flow.start(["OS", "Segment"])

    assert flow.options == ("OS", "Segment")
    assert flow.selected == {}


def test_finish_returns_to_idle():
    flow = ClarificationFlow()
    flow.start(["OS", "Segment"])
    flow.select("OS", "Linux")
    flow.finish()

    assert flow.status is ClarificationStatus.IDLE
    assert flow.options == ()
    assert flow.selected == {}
    assert flow.to_dict()["awaiting"] is False
