"""Infrastructure layer: Firestore, DocuSign, artifact storage, token verification."""
