import asyncio

from stores import WorkerOrderStore, urgency_rank_expression


class RecordingCursor:
    def __init__(self, docs):
        self.docs = docs

    async def to_list(self, length=None):
        return self.docs[:length] if length else self.docs


class RecordingCollection:
    def __init__(self, docs=()):
        self.docs = list(docs)
        self.pipelines = []

    def aggregate(self, pipeline):
        self.pipelines.append(pipeline)
        return RecordingCursor(self.docs)


def rank_of(label):
    expression = urgency_rank_expression()["$switch"]
    for branch in expression["branches"]:
        if branch["case"]["$eq"][1] == label:
            return branch["then"]
    return expression["default"]


def test_urgency_rank_is_numeric_and_most_pressing_first():
    ranks = [rank_of(label) for label in ("urgent", "high", "normal", "low", "someday")]
    assert ranks == sorted(ranks)
    assert ranks == [0, 1, 2, 3, 4]


def test_find_by_urgency_sorts_before_limiting():
    collection = RecordingCollection()
    store = WorkerOrderStore(collection)

    asyncio.run(store.find_by_urgency({"status": "open"}, limit=10, skip=20))

    stages = [next(iter(stage)) for stage in collection.pipelines[0]]
    assert stages == ["$match", "$addFields", "$sort", "$skip", "$limit", "$project"]
    pipeline = collection.pipelines[0]
    assert pipeline[2]["$sort"] == {"urgencyRank": 1, "createdAt": -1}
    assert pipeline[3] == {"$skip": 20}
    assert pipeline[4] == {"$limit": 10}


def test_find_by_urgency_near_uses_geo_near_first():
    collection = RecordingCollection()
    store = WorkerOrderStore(collection)

    asyncio.run(store.find_by_urgency({"status": "open"}, near=(53.9, 27.5667, 30), limit=5))

    pipeline = collection.pipelines[0]
    geo_near = pipeline[0]["$geoNear"]
    assert geo_near["near"]["coordinates"] == [27.5667, 53.9]
    assert geo_near["maxDistance"] == 30000
    assert geo_near["query"] == {"status": "open"}
    assert "$skip" not in [next(iter(stage)) for stage in pipeline]
