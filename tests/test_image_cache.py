import random
from collections import OrderedDict
from concurrent.futures import ThreadPoolExecutor

import pytest

from services.image_cache import ImageCache


def test_capacity_two_evicts_first_inserted():
    cache = ImageCache(max_cache_size=2)
    cache.set("a", "X")
    cache.set("b", "Y")
    cache.set("c", "Z")

    assert cache.get("a") is None
    assert cache.get("b") == "Y"
    assert cache.get("c") == "Z"
    assert len(cache) == 2


def test_overwrite_keeps_insertion_position():
    cache = ImageCache(max_cache_size=2)
    cache.set("a", 1)
    cache.set("b", 2)
    cache.set("a", 10)
    cache.set("c", 3)

    # "a" was inserted first; overwriting it does not make it younger
    assert cache.get("a") is None
    assert cache.get("b") == 2
    assert cache.get("c") == 3


def test_get_does_not_refresh_position():
    cache = ImageCache(max_cache_size=2)
    cache.set("a", 1)
    cache.set("b", 2)
    assert cache.get("a") == 1
    cache.set("c", 3)
    assert cache.get("a") is None


def test_get_after_clear_is_absent():
    cache = ImageCache(max_cache_size=5)
    keys = [f"k{i}" for i in range(5)]
    for key in keys:
        cache.set(key, key.upper())
    cache.clear()

    assert len(cache) == 0
    assert all(cache.get(key) is None for key in keys)


def test_rejects_non_positive_capacity():
    with pytest.raises(ValueError):
        ImageCache(max_cache_size=0)


@pytest.mark.parametrize("seed", range(20))
def test_random_sequences_match_fifo_model(seed):
    rng = random.Random(seed)
    capacity = rng.randint(1, 6)
    cache = ImageCache(max_cache_size=capacity)
    model: "OrderedDict[str, int]" = OrderedDict()

    for step in range(200):
        key = f"k{rng.randint(0, 12)}"
        if key not in model and len(model) >= capacity:
            expected_evicted, _ = model.popitem(last=False)
            cache.set(key, step)
            assert cache.get(expected_evicted) is None
        else:
            cache.set(key, step)
        model[key] = step

        assert len(cache) <= capacity
        assert len(cache) == len(model)

    for key, value in model.items():
        assert cache.get(key) == value


def test_concurrent_access_never_exceeds_capacity():
    capacity = 8
    cache = ImageCache(max_cache_size=capacity)
    errors = []
    sizes = []

    def worker(seed: int) -> None:
        rng = random.Random(seed)
        try:
            for _ in range(2000):
                op = rng.random()
                key = f"k{rng.randint(0, 30)}"
                if op < 0.5:
                    cache.set(key, (key, seed))
                elif op < 0.95:
                    value = cache.get(key)
                    # values are written whole; a reader never sees a partial tuple
                    assert value is None or (isinstance(value, tuple) and value[0] == key)
                else:
                    cache.clear()
                sizes.append(len(cache))
        except Exception as exc:
            errors.append(exc)

    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(worker, range(16)))

    assert not errors
    assert max(sizes) <= capacity
    assert len(cache) <= capacity
