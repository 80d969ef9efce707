import os
import secrets
import string
from pathlib import Path

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

PASSWORD_SYMBOLS = "()`~!@#$%^&*-+=|{}[]:;<>,.?/"


def generate_key_pair(key_path: str) -> str:
    """
    生成 RSA 密钥对，私钥写入 key_path，公钥写入 key_path + ".pub"

    Returns:
        OpenSSH 格式的公钥字符串
    """
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_bytes = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.OpenSSH,
        encryption_algorithm=serialization.NoEncryption(),
    )
    public_key = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.OpenSSH,
        format=serialization.PublicFormat.OpenSSH,
    ).decode("utf-8")

    path = Path(key_path).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(private_bytes)
    os.chmod(path, 0o600)
    Path(f"{path}.pub").write_text(public_key + "\n")
    return public_key


def get_public_key_body(path: str) -> str:
    """
    从私钥文件提取公钥

    Args:
        path: 私钥文件路径

    Returns:
        OpenSSH 格式的公钥字符串
    """
    with open(Path(path).expanduser(), 'rb') as f:
        key_data = f.read()

    # 尝试加载私钥(支持 PEM 和 OpenSSH 格式)
    try:
        private_key = serialization.load_pem_private_key(key_data, password=None)
    except ValueError:
        private_key = serialization.load_ssh_private_key(key_data, password=None)

    public_key_bytes = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.OpenSSH,
        format=serialization.PublicFormat.OpenSSH
    )

    return public_key_bytes.decode('utf-8').strip()


def generate_password(length: int = 16) -> str:
    # ECS 要求 8-30 位，且包含大写、小写、数字、特殊符号中的至少三类
    classes = [string.ascii_uppercase, string.ascii_lowercase, string.digits, PASSWORD_SYMBOLS]
    chars = [secrets.choice(c) for c in classes]
    alphabet = "".join(classes)
    chars += [secrets.choice(alphabet) for _ in range(length - len(chars))]
    secrets.SystemRandom().shuffle(chars)
    return "".join(chars)
