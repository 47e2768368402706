#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Alta de usuario para el login de recetas.

Uso:
    python crear_usuario.py <username>
(la contraseña se pide por consola)
"""
import sys
from getpass import getpass

from mysql.connector import Error

from app import get_db_connection
from modules.auth import hash_password


def create_user(conn, username, password_plain):
    """Inserta el usuario con la contraseña hasheada. Devuelve el id."""
    username = (username or '').strip()
    if not username or not password_plain:
        raise ValueError("Usuario y contraseña son obligatorios")
    if len(password_plain) < 4:
        raise ValueError("La contraseña debe tener al menos 4 caracteres")

    cur = conn.cursor()
    try:
        cur.execute("SELECT 1 FROM users WHERE username=%s", (username,))
        if cur.fetchone():
            raise ValueError("El usuario ya existe")

        cur.execute(
            "INSERT INTO users (username, password) VALUES (%s, %s)",
            (username, hash_password(password_plain)),
        )
        conn.commit()
        return cur.lastrowid
    except Error:
        conn.rollback()
        raise
    finally:
        cur.close()


def main(argv):
    if len(argv) != 2:
        print(__doc__)
        return 2

    password = getpass("Contraseña: ")
    if password != getpass("Repetir contraseña: "):
        print("❌ Las contraseñas no coinciden")
        return 1

    conn = get_db_connection()
    try:
        user_id = create_user(conn, argv[1], password)
    except ValueError as ve:
        print(f"❌ {ve}")
        return 1
    finally:
        conn.close()

    print(f"✅ Usuario creado (id={user_id})")
    return 0


if __name__ == '__main__':
    sys.exit(main(sys.argv))
