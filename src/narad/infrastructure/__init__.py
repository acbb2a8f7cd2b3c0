"""Backend connections and the cache/broker facades built on them."""
