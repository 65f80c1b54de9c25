class NotFoundError(LookupError):

    def __init__(self, kind: str, ident: str) -> None:
        super().__init__(f"{kind} {ident} not found")
        self.kind = kind
        self.ident = ident


class ForbiddenError(PermissionError):
    pass


class DocumentDecodeError(ValueError):
    """A stored document did not match its schema."""

    def __init__(self, collection: str, doc_id, detail: str) -> None:
        super().__init__(f"Malformed document in {collection} ({doc_id}): {detail}")
        self.collection = collection
        self.doc_id = doc_id


class BlobStoreError(RuntimeError):
    pass
