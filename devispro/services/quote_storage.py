# devispro/services/quote_storage.py
"""
Sauvegarde locale du dernier devis et d'un historique court.

Le stockage est un simple dictionnaire clé -> texte (JSON), propre à un poste :
ce n'est pas un mécanisme de synchronisation.
"""
import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, MutableMapping, Optional

from pydantic import ValidationError as PydanticValidationError

from devispro.schemas import Quote
from devispro.services.quote_service import ensure_line_ids, recompute

logger = logging.getLogger(__name__)

LAST_QUOTE_KEY = "devispro:lastQuote"
HISTORY_KEY = "devispro:quoteHistory"
HISTORY_LIMIT = 20


class JsonFileStore(MutableMapping):
    """Magasin clé/valeur persisté dans un fichier JSON."""

    def __init__(self, path):
        self.path = Path(path)

    def _read(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("Stockage local illisible (%s): %s", self.path, e)
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: Dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(data, ensure_ascii=False), encoding="utf-8")
        tmp.replace(self.path)

    def __getitem__(self, key: str) -> str:
        return self._read()[key]

    def __setitem__(self, key: str, value: str) -> None:
        data = self._read()
        data[key] = value
        self._write(data)

    def __delitem__(self, key: str) -> None:
        data = self._read()
        del data[key]
        self._write(data)

    def __iter__(self):
        return iter(self._read())

    def __len__(self) -> int:
        return len(self._read())


class QuoteStorage:
    def __init__(self, store: MutableMapping):
        self.store = store

    def save(self, quote: Quote) -> bool:
        recompute(quote)
        saved_at = datetime.now().isoformat()
        try:
            record = quote.to_storage()
            record["savedAt"] = saved_at
            self.store[LAST_QUOTE_KEY] = json.dumps(record, ensure_ascii=False)

            history = self.history()
            history.insert(0, {
                "id": quote.id,
                "number": quote.number,
                "clientName": quote.client.name,
                "totalTTC": quote.totals.ttc,
                "savedAt": saved_at,
            })
            self.store[HISTORY_KEY] = json.dumps(history[:HISTORY_LIMIT], ensure_ascii=False)
        except (OSError, TypeError, ValueError) as e:
            logger.error("Erreur sauvegarde du devis %s: %s", quote.id, e)
            return False
        return True

    def load(self) -> Optional[Quote]:
        raw = self.store.get(LAST_QUOTE_KEY)
        if not raw:
            return None
        try:
            data = json.loads(raw)
            if not isinstance(data, dict):
                raise ValueError("enregistrement inattendu")
            data.pop("savedAt", None)
            quote = Quote.model_validate(data)
        except (ValueError, TypeError, PydanticValidationError) as e:
            logger.warning("Dernier devis corrompu, ignoré: %s", e)
            return None
        ensure_line_ids(quote)
        # les totaux stockés ne sont jamais repris tels quels
        recompute(quote)
        return quote

    def history(self) -> List[Dict[str, Any]]:
        raw = self.store.get(HISTORY_KEY)
        if not raw:
            return []
        try:
            entries = json.loads(raw)
        except (TypeError, ValueError) as e:
            logger.warning("Historique corrompu, réinitialisé: %s", e)
            return []
        if not isinstance(entries, list):
            return []
        return [e for e in entries if isinstance(e, dict)]
