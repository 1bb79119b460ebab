import json
from datetime import timedelta

from conftest import REFERENCE, FakeWeather, add_focus, add_planting, add_reminder

from gardenit.exceptions import WeatherFetchError
from gardenit.models.notification import Notification, NotificationRule
from gardenit.models.reminder import Reminder
from gardenit.schemas.rule_params import decode_rule_params
from gardenit.services.notifications import SUPPRESSION_NOTE
from gardenit.services.rule_context import build_user_context
from gardenit.services.rule_evaluators import (
    RuleRun,
    decide_phenology,
    decide_weather,
    evaluate_rule,
)
from gardenit.services.weather import WeatherSnapshot


def make_rule(db, user, rule_type, params, schedule=None, throttle_secs=3600, name=None):
    rule = NotificationRule(
        user_id=user.id,
        name=name or f"{rule_type}_rule",
        type=rule_type,
        schedule=schedule,
        params=json.dumps(params),
        throttle_secs=throttle_secs,
    )
    db.add(rule)
    db.commit()
    return rule


def run_for(db, user, outbox, snapshot=None, reference=REFERENCE):
    if snapshot is None:
        weather = FakeWeather(error=WeatherFetchError("forecast offline"))
    else:
        weather = FakeWeather(snapshot)
    context = build_user_context(db, user, weather)
    return RuleRun(db=db, reference=reference, user=user, context=context, send=outbox)


NOTIFY = {"do": "notify", "title": "Alert", "body": "Body", "severity": "info", "channel": "inapp"}


def test_rain_rule_suppresses_watering_and_emails(db, user, outbox):
    due_soon = add_reminder(db, user, "Water tomatoes", REFERENCE + timedelta(hours=10))
    due_later = add_reminder(db, user, "Water beans", REFERENCE + timedelta(hours=30))
    feeding = add_reminder(db, user, "Feed roses", REFERENCE + timedelta(hours=5), reminder_type="feeding")
    rule = make_rule(db, user, "weather", {
        "precipProbNext24hGte": 0.6,
        "actions": [
            {"do": "suppress_tasks", "where": {"type": "watering"}},
            {"do": "notify", "title": "Rain coming", "body": "Skip watering", "channel": "email"},
        ],
    })
    run = run_for(db, user, outbox, WeatherSnapshot(precip_prob_next_24h=0.8))

    notifications = evaluate_rule(run, rule)

    db.refresh(due_soon)
    assert due_soon.due_at == REFERENCE + timedelta(hours=18 + 24)
    assert due_soon.details == SUPPRESSION_NOTE
    assert db.get(Reminder, due_later.id).due_at == REFERENCE + timedelta(hours=30)
    assert db.get(Reminder, feeding.id).details is None
    assert len(notifications) == 1
    assert notifications[0].channel == "email"
    assert db.query(Notification).count() == 1
    assert [mail["to"] for mail in outbox.sent] == ["gardener@example.com"]
    assert outbox.sent[0]["subject"] == "[Gardenit] Rain coming"


def test_weather_checks_stop_at_first_match():
    params = decode_rule_params("weather", {
        "precipProbNext24hGte": 0.5,
        "maxTempTomorrowGte": 25,
        "actions": [NOTIFY],
    })

    class Context:
        weather = WeatherSnapshot(precip_prob_next_24h=0.9, max_temp_tomorrow=30)

    decision = decide_weather(REFERENCE, params, Context())

    assert decision.meta["condition"] == "rain"


def test_frost_bounds_are_conjunctive(db, user, outbox):
    rule = make_rule(db, user, "weather", {"frostProbGte": 0.3, "minTempLte": 0, "actions": [NOTIFY]})
    cold = WeatherSnapshot(min_temp_next_24h=-1, frost_probability=0.5)
    mild = WeatherSnapshot(min_temp_next_24h=1, frost_probability=0.5)

    assert evaluate_rule(run_for(db, user, outbox, mild), rule) == []
    fired = evaluate_rule(run_for(db, user, outbox, cold), rule)

    assert len(fired) == 1
    assert json.loads(fired[0].meta)["condition"] == "frost"


def test_frost_with_only_min_temp_bound(db, user, outbox):
    rule = make_rule(db, user, "weather", {"minTempLte": 2, "actions": [NOTIFY]})

    assert len(evaluate_rule(run_for(db, user, outbox, WeatherSnapshot(min_temp_next_24h=1.5)), rule)) == 1


def test_weather_rule_without_snapshot_is_noop(db, user, outbox):
    rule = make_rule(db, user, "weather", {"precipProbNext24hGte": 0, "actions": [NOTIFY]})

    assert evaluate_rule(run_for(db, user, outbox), rule) == []


def test_heat_and_wind_ignore_missing_values(db, user, outbox):
    heat = make_rule(db, user, "weather", {"maxTempTomorrowGte": -50, "actions": [NOTIFY]}, name="heat")
    wind = make_rule(db, user, "weather", {"gustsNext24hGte": 0, "actions": [NOTIFY]}, name="wind")
    run = run_for(db, user, outbox, WeatherSnapshot())

    assert evaluate_rule(run, heat) == []
    assert len(evaluate_rule(run, wind)) == 1


def test_soil_rule_names_matching_plantings(db, user, outbox):
    add_planting(db, user, "Dwarf Beans", REFERENCE - timedelta(days=5))
    add_planting(db, user, "Carrot", REFERENCE - timedelta(days=5))
    rule = make_rule(db, user, "soil", {"soilTemp10cmGte": 12, "species": ["BEANS"], "actions": [NOTIFY]})

    fired = evaluate_rule(run_for(db, user, outbox, WeatherSnapshot(soil_temp_10cm=13)), rule)

    assert len(fired) == 1
    assert "Dwarf Beans" in fired[0].body
    assert "Carrot" not in fired[0].body
    assert fired[0].title == "Alert"


def test_soil_rule_without_matching_planting_sends_nothing(db, user, outbox):
    add_planting(db, user, "Carrot", REFERENCE - timedelta(days=5))
    rule = make_rule(db, user, "soil", {"soilTemp10cmGte": 12, "species": ["beans"], "actions": [NOTIFY]})

    assert evaluate_rule(run_for(db, user, outbox, WeatherSnapshot(soil_temp_10cm=13)), rule) == []
    assert db.query(Notification).count() == 0


def test_soil_rule_below_threshold(db, user, outbox):
    add_planting(db, user, "Dwarf Beans", REFERENCE - timedelta(days=5))
    rule = make_rule(db, user, "soil", {"soilTemp10cmGte": 12, "species": ["beans"], "actions": [NOTIFY]})

    assert evaluate_rule(run_for(db, user, outbox, WeatherSnapshot(soil_temp_10cm=11.9)), rule) == []


def test_phenology_ratio_boundary_is_inclusive(db, user, outbox):
    add_planting(db, user, "Carrot", REFERENCE - timedelta(days=56), days_to_maturity=70)
    add_planting(db, user, "Leek", REFERENCE - timedelta(days=10), days_to_maturity=120)
    add_planting(db, user, "Mystery", REFERENCE - timedelta(days=400))
    rule = make_rule(db, user, "phenology", {"maturityGDDPctGte": 0.8, "actions": [NOTIFY]})

    fired = evaluate_rule(run_for(db, user, outbox), rule)

    assert len(fired) == 1
    assert fired[0].body == "Check Carrot for harvest readiness."


def test_phenology_ignores_inactive_plantings(db, user, outbox):
    planting = add_planting(db, user, "Carrot", REFERENCE - timedelta(days=90), days_to_maturity=70)
    planting.active = 0
    db.commit()
    run = run_for(db, user, outbox)

    assert decide_phenology(REFERENCE, decode_rule_params("phenology", {}), run.context) is None


def test_garden_rule_escalates_overdue_focus_tasks(db, user, outbox):
    focused = add_reminder(db, user, "Stake tomatoes", REFERENCE - timedelta(hours=50), "staking")
    add_reminder(db, user, "Weed paths", REFERENCE - timedelta(hours=72), "weeding")
    handled = add_reminder(
        db, user, "Prune", REFERENCE - timedelta(hours=60), "pruning",
        sent_at=REFERENCE - timedelta(hours=10),
    )
    add_focus(db, user, "task", focused.id)
    add_focus(db, user, "task", handled.id)
    rule = make_rule(db, user, "garden", {"focusOnly": True, "overdueTaskHoursGte": 48, "actions": [NOTIFY]})

    fired = evaluate_rule(run_for(db, user, outbox), rule)

    assert len(fired) == 1
    assert "Stake tomatoes" in fired[0].body
    assert "Weed paths" not in fired[0].body
    assert json.loads(fired[0].meta) == {"reminders": [focused.id]}


def test_garden_rule_without_focus_filter_lists_all_overdue(db, user, outbox):
    add_reminder(db, user, "Weed paths", REFERENCE - timedelta(hours=72), "weeding")
    add_reminder(db, user, "Mulch", REFERENCE - timedelta(hours=2), "mulching")
    rule = make_rule(db, user, "garden", {"actions": []})

    fired = evaluate_rule(run_for(db, user, outbox), rule)

    assert len(fired) == 1
    assert fired[0].severity == "warning"
    assert "Weed paths" in fired[0].body
    assert "Mulch" not in fired[0].body


def test_time_rule_without_schedule_never_fires(db, user, outbox):
    rule = make_rule(db, user, "time", {"actions": [NOTIFY]})

    assert evaluate_rule(run_for(db, user, outbox), rule) == []


def test_time_rule_uses_weather_time_zone(db, user, outbox):
    rule = make_rule(db, user, "time", {"actions": [NOTIFY]}, schedule="FREQ=DAILY;BYHOUR=9;BYMINUTE=10")

    utc_run = run_for(db, user, outbox, WeatherSnapshot(timezone="UTC"))
    assert evaluate_rule(utc_run, rule) == []

    # 07:10 UTC is 09:10 in Berlin during summer time
    berlin_run = run_for(db, user, outbox, WeatherSnapshot(timezone="Europe/Berlin"))
    assert len(evaluate_rule(berlin_run, rule)) == 1


def test_time_rule_digest_emails_focus_and_tasks(db, user, outbox):
    planting = add_planting(db, user, "Tomato", REFERENCE - timedelta(days=30))
    add_focus(db, user, "planting", planting.id)
    add_reminder(db, user, "Water tomatoes", REFERENCE + timedelta(hours=3))
    rule = make_rule(
        db, user, "time", {"actions": [{"do": "digest"}]},
        schedule="FREQ=DAILY;BYHOUR=7;BYMINUTE=10", throttle_secs=72000,
    )

    fired = evaluate_rule(run_for(db, user, outbox), rule)

    assert len(fired) == 1
    assert fired[0].channel == "email"
    assert "Tomato in North Bed (Kitchen)" in fired[0].body
    assert "Water tomatoes" in fired[0].body
    assert outbox.sent[0]["subject"] == "[Gardenit] Morning digest"


def test_push_channel_is_delivered_by_email(db, user, outbox):
    rule = make_rule(db, user, "time", {"actions": [dict(NOTIFY, channel="push")]}, schedule="FREQ=DAILY")

    evaluate_rule(run_for(db, user, outbox), rule)

    assert len(outbox.sent) == 1


def test_escalate_action_raises_severity(db, user, outbox):
    rule = make_rule(db, user, "time", {
        "actions": [{"do": "escalate", "title": "Still overdue", "severity": "warning"}],
    }, schedule="FREQ=DAILY")

    fired = evaluate_rule(run_for(db, user, outbox), rule)

    assert len(fired) == 1
    assert fired[0].severity == "critical"
    assert json.loads(fired[0].meta) == {"escalatedFrom": "warning"}


def test_escalate_after_notify_in_same_rule_is_throttled(db, user, outbox):
    rule = make_rule(db, user, "time", {
        "actions": [NOTIFY, {"do": "escalate", "title": "Still overdue"}],
    }, schedule="FREQ=DAILY")

    fired = evaluate_rule(run_for(db, user, outbox), rule)

    assert [n.title for n in fired] == ["Alert", "Alert"]
    assert fired[0].id == fired[1].id
    assert db.query(Notification).count() == 1
