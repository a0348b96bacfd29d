from ...domain.entities import User

class IUserRepository:
    def get_by_email(self, email: str) -> User | None: ...
    def create(self, email: str, password_hash: str, name: str = "", role: str = "user") -> User: ...

class IPasswordHasher:
    def hash(self, plain: str) -> str: ...

class RegisterUser:
    def __init__(self, repo: IUserRepository, hasher: IPasswordHasher, admin_emails: list[str] | None = None):
        self.repo = repo
        self.hasher = hasher
        self.admin_emails = {e.lower() for e in (admin_emails or [])}

    def execute(self, email: str, password: str, name: str = "") -> User:
        if "@" not in email:
            raise ValueError("Invalid email")
        if len(password) < 8:
            raise ValueError("Password must be at least 8 characters")
        if self.repo.get_by_email(email):
            raise ValueError("Email already registered")
        role = "admin" if email.lower() in self.admin_emails else "user"
        pwd_hash = self.hasher.hash(password)
        return self.repo.create(email, pwd_hash, name=name, role=role)
