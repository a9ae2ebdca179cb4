# devispro/repositories.py
"""
Accès aux données : un dépôt par agrégat, tous sur la même Session SQLModel.
Le backend réel (SQLite, MySQL, PostgreSQL) ne dépend que de DATABASE_URL.
"""
from typing import Optional, List

from sqlalchemy import update
from sqlmodel import Session, select

from devispro.models import User, StoredQuote, PaymentEvent, utcnow


class UserRepository:
    def __init__(self, session: Session):
        self.session = session

    def get(self, user_id: int) -> Optional[User]:
        return self.session.get(User, user_id)

    def by_email(self, email: str) -> Optional[User]:
        return self.session.exec(select(User).where(User.email == email)).first()

    def by_customer(self, customer_id: str) -> Optional[User]:
        return self.session.exec(select(User).where(User.stripe_customer_id == customer_id)).first()

    def add(self, user: User) -> User:
        user.updated_at = utcnow()
        self.session.add(user)
        return user

    def consume_credit(self, user_id: int) -> bool:
        """
        Décrémente d'un crédit en une seule requête conditionnelle.
        Renvoie False si l'utilisateur n'a plus de crédit (aucune ligne touchée).
        """
        result = self.session.execute(
            update(User)
            .where(User.id == user_id, User.credits > 0, User.subscription_tier == "free")
            .values(credits=User.credits - 1, updated_at=utcnow())
        )
        return result.rowcount == 1

    def add_credits(self, user_id: int, amount: int) -> None:
        """Ajout calculé par la base : ne réécrit jamais un solde lu plus tôt."""
        self.session.execute(
            update(User)
            .where(User.id == user_id)
            .values(credits=User.credits + amount, updated_at=utcnow())
        )


class QuoteRepository:
    def __init__(self, session: Session):
        self.session = session

    def add(self, quote: StoredQuote) -> StoredQuote:
        self.session.add(quote)
        return quote

    def get_for_user(self, quote_id: int, user_id: int) -> Optional[StoredQuote]:
        quote = self.session.get(StoredQuote, quote_id)
        if not quote or quote.user_id != user_id:
            return None
        return quote

    def list_for_user(self, user_id: int) -> List[StoredQuote]:
        return list(self.session.exec(
            select(StoredQuote)
            .where(StoredQuote.user_id == user_id)
            .order_by(StoredQuote.created_at.desc(), StoredQuote.id.desc())
        ).all())

    def number_taken(self, quote_number: str) -> bool:
        found = self.session.exec(
            select(StoredQuote.id).where(StoredQuote.quote_number == quote_number)
        ).first()
        return found is not None


class PaymentEventRepository:
    def __init__(self, session: Session):
        self.session = session

    def exists(self, provider_ref: str) -> bool:
        found = self.session.exec(
            select(PaymentEvent.id).where(PaymentEvent.provider_ref == provider_ref)
        ).first()
        return found is not None

    def record(self, event: PaymentEvent) -> PaymentEvent:
        self.session.add(event)
        return event
