"""Print assessment progress straight from a SQLite database file.

Usage: python scripts/db_inspect.py [path/to/assessment.db ...]
"""
import os, sqlite3, sys

DBS = [
    os.path.join(os.getcwd(), 'assessment.db'),
    os.path.join(os.getcwd(), 'instance', 'assessment.db'),
]


def inspect(db):
    print(f"\n=== {db} ===")
    if not os.path.exists(db):
        print("missing")
        return
    conn = sqlite3.connect(db)
    cur = conn.cursor()

    def q(sql, params=()):
        cur.execute(sql, params)
        return cur.fetchall()
    try:
        print('scenarios:', q('select id,display_order,response_type,active,title from scenarios order by display_order,id'))
        print('applicants (id,email,cursor,started,completed):',
              q("select id,email,current_scenario_index,interview_started_at,completed_at from users where role='applicant' order by id"))
        print('recordings per user:', q('select user_id,count(*) from recordings group by user_id order by user_id'))
        print('text responses per user:', q('select user_id,count(*) from text_responses group by user_id order by user_id'))
        print('ratings:', q('select count(*),min(rating),max(rating) from response_ratings'))
        # any (user, scenario) answered twice
        print('duplicate answers:', q(
            'select user_id,scenario_id,count(*) from ('
            ' select user_id,scenario_id from recordings union all select user_id,scenario_id from text_responses'
            ') group by user_id,scenario_id having count(*) > 1'))
    except sqlite3.Error as e:
        print('error:', e)
    finally:
        conn.close()


if __name__ == '__main__':
    for db in (sys.argv[1:] or DBS):
        inspect(db)
    print('\nDone.')
