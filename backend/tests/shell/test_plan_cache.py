"""Tests for plan caches and the week-keyed PlanStore."""

from datetime import date

from macroplan.core.planner import generate_week_plan
from macroplan.shell.plan_cache import FilePlanCache, MemoryPlanCache, PlanStore


MONDAY = date(2025, 3, 3)


class TestFilePlanCache:
    """Tests for the file-backed cache."""

    def test_missing_key(self, tmp_path):
        """Unknown keys read as None."""
        assert FilePlanCache(tmp_path).get("nope") is None

    def test_set_then_get(self, tmp_path):
        """A stored payload reads back unchanged."""
        cache = FilePlanCache(tmp_path)
        cache.set("user:weekPlan_2025-03-03", '{"a": 1}')
        assert cache.get("user:weekPlan_2025-03-03") == '{"a": 1}'

    def test_overwrite(self, tmp_path):
        """Setting a key again replaces the payload."""
        cache = FilePlanCache(tmp_path)
        cache.set("k", "one")
        cache.set("k", "two")
        assert cache.get("k") == "two"
        assert not list(tmp_path.glob("*.tmp"))

    def test_keys_stay_inside_directory(self, tmp_path):
        """Path characters in keys cannot escape the cache directory."""
        cache = FilePlanCache(tmp_path / "plans")
        cache.set("../evil", "x")
        assert [p.parent for p in (tmp_path / "plans").iterdir()] == [tmp_path / "plans"]
        assert cache.get("../evil") == "x"

    def test_creates_directory(self, tmp_path):
        """The directory is created on first use."""
        FilePlanCache(tmp_path / "a" / "b")
        assert (tmp_path / "a" / "b").is_dir()


class TestPlanStore:
    """Tests for PlanStore."""

    def test_key_scoped_to_user(self):
        """Keys combine the user and the week's Monday."""
        store = PlanStore(MemoryPlanCache(), "u1")
        assert store.key_for(MONDAY) == "u1:weekPlan_2025-03-03"

    def test_save_then_load(self):
        """A saved plan loads back equal."""
        store = PlanStore(MemoryPlanCache(), "u1")
        plan = generate_week_plan(MONDAY, "muscle_gain")
        store.save(plan)
        assert store.load(MONDAY) == plan

    def test_users_do_not_share_plans(self):
        """Another user's plan for the same week is not visible."""
        cache = MemoryPlanCache()
        PlanStore(cache, "u1").save(generate_week_plan(MONDAY))
        assert PlanStore(cache, "u2").load(MONDAY) is None

    def test_corrupt_payload_is_a_miss(self):
        """Invalid JSON reads as None."""
        cache = MemoryPlanCache()
        store = PlanStore(cache, "u1")
        cache.set(store.key_for(MONDAY), "{broken")
        assert store.load(MONDAY) is None

    def test_wrong_shape_is_a_miss(self):
        """Valid JSON that is not a plan reads as None."""
        cache = MemoryPlanCache()
        store = PlanStore(cache, "u1")
        cache.set(store.key_for(MONDAY), '{"week_start": "2025-03-03", "days": []}')
        assert store.load(MONDAY) is None

    def test_plan_for_other_week_is_a_miss(self):
        """A plan stored under the wrong week's key is ignored."""
        cache = MemoryPlanCache()
        store = PlanStore(cache, "u1")
        cache.set(store.key_for(MONDAY), generate_week_plan(date(2025, 3, 10)).model_dump_json())
        assert store.load(MONDAY) is None

    def test_file_cache_round_trip(self, tmp_path):
        """Plans survive a new FilePlanCache over the same directory."""
        plan = generate_week_plan(MONDAY)
        PlanStore(FilePlanCache(tmp_path), "u1").save(plan)
        assert PlanStore(FilePlanCache(tmp_path), "u1").load(MONDAY) == plan

    def test_undecodable_file_is_a_miss(self, tmp_path):
        """A cache file that is not UTF-8 reads as None."""
        (tmp_path / "u1_weekPlan_2025-03-03.json").write_bytes(b"\xff\xfe{not json")
        assert PlanStore(FilePlanCache(tmp_path), "u1").load(MONDAY) is None

    def test_unreadable_file_is_a_miss(self, tmp_path):
        """A cache entry that cannot be read reads as None."""
        (tmp_path / "u1_weekPlan_2025-03-03.json").mkdir()
        assert PlanStore(FilePlanCache(tmp_path), "u1").load(MONDAY) is None
