# app.py
"""
Entrypoint da aplicação.

Uso:
  python app.py migrate --db fazenda.db
  python app.py produtos listar --baixo
  python app.py fumigacoes concluir <id> --estrito
  python app.py colheitas concluir <id> @conclusao.json
  python app.py transferencias enviar <id>
  python app.py rel dashboard
  python app.py rel produtos --saida produtos.xlsx
"""

from fazenda.adapters.cli import main

if __name__ == "__main__":
    main()
