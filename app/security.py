# app/security.py
from passlib.context import CryptContext

# Фіксований коефіцієнт складності bcrypt; сіль і cost зберігаються в самому хеші
BCRYPT_ROUNDS = 12

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=BCRYPT_ROUNDS)


class CorruptCredential(Exception):
    """
    Збережений хеш пароля пошкоджений або має невідомий формат.
    """


def hash_password(password: str) -> str:
    """
    Хешує пароль користувача.

    Операція навмисно повільна, тому викликається лише з синхронних
    ендпоінтів, які FastAPI виконує в пулі потоків.

    Args:
        password (str): Звичайний текст пароля.

    Returns:
        str: Захешований пароль.
    """
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Перевіряє відповідність звичайного пароля та захешованого.

    Args:
        plain_password (str): Звичайний текст пароля.
        hashed_password (str): Захешований пароль.

    Returns:
        bool: True, якщо паролі співпадають, інакше False.

    Raises:
        CorruptCredential: Якщо хеш не вдалося розпізнати.
    """
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except (ValueError, TypeError) as exc:
        raise CorruptCredential(str(exc)) from exc
