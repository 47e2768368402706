#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Script para crear las tablas de la app (recetas, users, session)
"""
import os
import sys
import mysql.connector

from modules.config import Config

BASE_DIR = os.path.dirname(os.path.abspath(__file__))
SQL_FILE = os.path.join(BASE_DIR, 'migrations', '001_recetas.sql')


def leer_sentencias(sql_content: str):
    """Saca comentarios `--` y separa por `;`."""
    clean_lines = []
    for line in sql_content.split('\n'):
        if '--' in line:
            line = line[:line.index('--')]
        if line.strip():
            clean_lines.append(line)

    clean_sql = '\n'.join(clean_lines)
    return [stmt.strip() for stmt in clean_sql.split(';') if stmt.strip()]


def ejecutar_migracion(sql_file=SQL_FILE):
    print("=" * 80)
    print(f"Ejecutando migración: {os.path.basename(sql_file)}")
    print("=" * 80)

    with open(sql_file, 'r', encoding='utf-8') as f:
        statements = leer_sentencias(f.read())
    print(f"✓ Encontradas {len(statements)} sentencias SQL")

    Config.validate()
    conn = mysql.connector.connect(
        host=Config.DB_HOST or '127.0.0.1',
        port=Config.DB_PORT,
        user=Config.DB_USER,
        password=Config.DB_PASS,
        database=Config.DB_NAME,
        charset=Config.DB_CHARSET,
    )
    cur = conn.cursor()
    print(f"✓ Conectado a base de datos: {Config.DB_NAME}\n")

    try:
        for i, statement in enumerate(statements, 1):
            preview = statement[:80].replace('\n', ' ')
            print(f"[{i}/{len(statements)}] {preview}...")
            try:
                cur.execute(statement)
                conn.commit()
            except mysql.connector.Error as e:
                if "already exists" in str(e) or "Duplicate" in str(e):
                    print(f"    → Ya existe, continuando...")
                    continue
                conn.rollback()
                raise
    finally:
        cur.close()
        conn.close()

    print("\n✅ Migración completada")


if __name__ == '__main__':
    try:
        ejecutar_migracion()
    except FileNotFoundError:
        print(f"\n❌ ERROR: No se encontró el archivo {SQL_FILE}")
        sys.exit(1)
    except Exception as e:
        print(f"\n❌ ERROR: {e}")
        sys.exit(1)
